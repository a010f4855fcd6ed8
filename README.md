# locengine

Building blocks for a GNSS location engine, in plain Python with no
third-party dependencies. It needs a POSIX system: `locengine.message_pipe`
uses named pipes and `fcntl`.

## Modules

### `locengine.nmea`

- `put_checksum(sentence)` appends `*HH\r\n` to a sentence that starts with
  `$`, where `HH` is the XOR of every character after the `$`. It raises
  `ValueError` if the `$` is missing, the text is not ASCII, or the result
  would not fit in a 200-character sentence buffer.
- `SvInfo`, `SvStatus` and `LocationExtended` are dataclasses describing
  satellites in view, the used-in-fix bit mask, and optional extra position
  data (DOP, magnetic deviation, altitude above mean sea level).
- `NmeaReporter(callback, standalone)` passes each finished sentence to
  `callback(timestamp_ms, sentence)`. `generate_sv(sv_status,
  location_extended)` sends `$GPGSV` sentences for GPS satellites (PRN 1–32)
  and `$GLGSV` sentences for GLONASS satellites (PRN 65–96), four per
  sentence, dropping others. With no satellite used in the fix it follows
  with a blank fix (`send_blank_fix()`); otherwise it caches the used mask
  and DOP for the next position report. Both methods return the sentences
  they sent.

### `locengine.nmea_position`

- `Location` is a dataclass for one fix; `timestamp` is UTC milliseconds
  and any field left as `None` is treated as unavailable.
- `generate_pos(reporter, location, location_extended, generate_nmea=True)`
  sends `$GPGSA`, `$GPVTG`, `$GPRMC` and `$GPGGA` through an `NmeaReporter`
  and returns them. It consumes the reporter's cached used-in-fix mask and
  clears its cached DOP. With `generate_nmea=False` it sends a blank fix.

### `locengine.xtra`

- `XtraModule(adapter)` holds XTRA state. `init(callbacks)` installs an
  `XtraCallbacks` (raising `ValueError` for `None`); `inject_data(data)`
  and `request_server()` build an `InjectXtraData` or `RequestXtraServer`
  message, hand it to `adapter.send_msg`, and return it. Calling a
  message's `proc()` makes the adapter act on it.

### `locengine.ni`

- `NiEngine(adapter, mute_session=None)` tracks one regular and one
  emergency network-initiated session. `init(notify_cb)` installs the
  notification callback (returns `False` if one is already installed).
  `request(notification, pass_through)` shows a `NiNotification` and
  returns its id, or `None` if a session is busy. A background thread waits
  for `respond(notif_id, user_response)` or times out after the
  notification's timeout (20 s when zero) plus `grace_seconds` (5 s by
  default), then sends an `InformNiResponse` to `adapter.send_msg`.
  `respond` raises `LookupError` for an unknown id;
  `reset_on_engine_restart()` drops pending requests without answering.

### `locengine.message_pipe`

- `MessagePipe.open(path, mode)` creates a FIFO (mode `0660`) if needed and
  opens it with the given `os.open` flags. `send(payload)` and
  `receive(max_size)` exchange messages prefixed with a native `size_t`
  holding the total length; `write`, `read`, `flush`, `unblock` and
  `remove` work on raw bytes and the file. It is a context manager that
  removes the FIFO on exit. Failures raise `PipeError`.

### `locengine.dmn_handler`

- `ControlMessage.pack()` / `ControlMessage.unpack(data)` convert control
  messages (`ControlType`, `IfRequest`) to and from their fixed native
  layout.
- `DataConnectionHandler(loc_api_handle, send)` turns interface request
  and release messages into `WifiRequest` or `BitRequest` objects, passes
  them to `send` and returns them. Unknown types or senders, or a missing
  handle on a request, raise `HandlerError`.

### `locengine.thread_helper`

- `ThreadHelper.launch(proc_init, proc_pre, proc, proc_post,
  create_thread, context)` runs init, pre, loop and post stages in a worker
  thread and waits until init has finished; it raises `RuntimeError` if
  init fails. `unblock()` stops the loop, `join()` waits for the thread.
  `signal_wait`, `signal_ready` and `signal_block` expose the ready signal.

### `locengine.clock`

- `system_time_us()` returns wall-clock microseconds;
  `elapsed_millis_since_boot()` returns the same clock in milliseconds (it
  is wall-clock time, not time since boot). `timestamped_line(message,
  now=None)` prefixes a message with `HH:MM:SS.uuuuuu]`.

## Example

```python
from locengine.nmea import NmeaReporter, SvInfo, SvStatus, LocationExtended
from locengine.nmea_position import Location, generate_pos

sentences = []
reporter = NmeaReporter(lambda ts, s: sentences.append(s), standalone=True)
status = SvStatus(sv_list=[SvInfo(prn=5, snr=40.0, elevation=30.0, azimuth=120.0)],
                  used_in_fix_mask=1 << 4)
reporter.generate_sv(status, LocationExtended())
generate_pos(reporter, Location(timestamp=0, latitude=48.1, longitude=11.5),
             LocationExtended())
for sentence in sentences:
    print(sentence, end="")
```

## What it does not do

The package is a library only: it has no command-line program, no daemon
or server loop, and no positioning engine of its own. The adapter objects
that `XtraModule`, `NiEngine` and `DataConnectionHandler` send messages to
are supplied by the caller; nothing here talks to a receiver or modem.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```