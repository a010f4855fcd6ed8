"""NMEA 0183 sentence checksums and satellite-in-view ($GPGSV/$GLGSV) reports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from locengine.clock import system_time_us

log = logging.getLogger(__name__)

NMEA_SENTENCE_MAX_LENGTH = 200

GPS_PRN_START = 1
GPS_PRN_END = 32
GLONASS_PRN_START = 65
GLONASS_PRN_END = 96

SATELLITES_PER_GSV = 4

BLANK_FIX_SENTENCES = (
    "$GPGSA,A,1,,,,,,,,,,,,,,,",
    "$GPVTG,,T,,M,,N,,K,N",
    "$GPRMC,,V,,,,,,,,,,N",
    "$GPGGA,,,,,,0,,,,,,,,",
)

NmeaCallback = Callable[[int, str], None]


def put_checksum(sentence: str) -> str:
    """Append ``*HH\\r\\n`` to a sentence that starts with ``$``.

    The checksum is the XOR of every character after the leading ``$``.
    Raises ValueError if the sentence lacks the ``$``, is not ASCII, or
    would not fit in an NMEA sentence buffer.
    """
    if not sentence.startswith("$"):
        raise ValueError("NMEA sentence must start with '$'")
    checksum = 0
    for byte in sentence[1:].encode("ascii"):
        checksum ^= byte
    result = f"{sentence}*{checksum:02X}\r\n"
    if len(result) >= NMEA_SENTENCE_MAX_LENGTH:
        raise ValueError(
            f"NMEA sentence of {len(result)} characters exceeds "
            f"{NMEA_SENTENCE_MAX_LENGTH - 1}"
        )
    return result


@dataclass
class SvInfo:
    """One satellite in view."""

    prn: int
    snr: float = 0.0
    elevation: float = 0.0
    azimuth: float = 0.0


@dataclass
class SvStatus:
    """Satellites in view and the bit mask of those used in the fix."""

    sv_list: List[SvInfo] = field(default_factory=list)
    used_in_fix_mask: int = 0


@dataclass
class LocationExtended:
    """Optional extra position data; a field left as None is not available."""

    altitude_mean_sea_level: Optional[float] = None
    pdop: Optional[float] = None
    hdop: Optional[float] = None
    vdop: Optional[float] = None
    magnetic_deviation: Optional[float] = None

    @property
    def has_dop(self) -> bool:
        return self.pdop is not None and self.hdop is not None and self.vdop is not None

    @property
    def has_magnetic_deviation(self) -> bool:
        return self.magnetic_deviation is not None

    @property
    def has_altitude_mean_sea_level(self) -> bool:
        return self.altitude_mean_sea_level is not None


def _chunks(items: Sequence[SvInfo], size: int) -> Iterator[Sequence[SvInfo]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _round(value: float) -> int:
    # Adds one half and truncates toward zero, as a float-to-int cast does.
    return int(0.5 + value)


def _gsv_sentences(talker: str, satellites: Sequence[SvInfo]) -> List[str]:
    if not satellites:
        return [f"${talker}GSV,1,1,0,"]
    count = len(satellites)
    total = -(-count // SATELLITES_PER_GSV)
    bodies = []
    for number, group in enumerate(_chunks(satellites, SATELLITES_PER_GSV), start=1):
        parts = [f"${talker}GSV,{total},{number},{count:02d}"]
        for sv in group:
            parts.append(
                f",{sv.prn:02d},{_round(sv.elevation):02d},{_round(sv.azimuth):03d},"
            )
            if sv.snr > 0:
                parts.append(f"{_round(sv.snr):02d}")
        bodies.append("".join(parts))
    return bodies


class NmeaReporter:
    """Builds NMEA sentences and hands them to a callback.

    The reporter caches the used-in-fix mask and the dilution of precision
    from a satellite report so that the next position report can use them.
    ``standalone`` tells whether the engine runs in standalone position mode.
    """

    def __init__(self, callback: Optional[NmeaCallback] = None, standalone: bool = True) -> None:
        self.callback = callback
        self.standalone = standalone
        self.sv_used_mask = 0
        self.pdop = 0.0
        self.hdop = 0.0
        self.vdop = 0.0

    @property
    def has_cached_dop(self) -> bool:
        return self.pdop > 0 and self.hdop > 0 and self.vdop > 0

    def clear_dop(self) -> None:
        self.pdop = self.hdop = self.vdop = 0.0

    def send(self, sentence: str) -> None:
        """Pass a finished sentence and the current time in ms to the callback."""
        now_ms = system_time_us(0) // 1000
        if self.callback is not None:
            self.callback(now_ms, sentence)
        log.debug("NMEA <%s", sentence)

    def _emit_all(self, bodies: Iterable[str]) -> List[str]:
        sent = []
        for body in bodies:
            sentence = put_checksum(body)
            self.send(sentence)
            sent.append(sentence)
        return sent

    def send_blank_fix(self) -> List[str]:
        """Send empty GSA, VTG, RMC and GGA sentences; return them."""
        return self._emit_all(BLANK_FIX_SENTENCES)

    def generate_sv(self, sv_status: SvStatus, location_extended: LocationExtended) -> List[str]:
        """Send the satellite-in-view sentences for a report; return all sent.

        GPS satellites go in $GPGSV, GLONASS ones in $GLGSV, others are
        dropped. With no satellite used in the fix a blank fix follows;
        otherwise the used mask and the DOP are cached for the next fix.
        """
        gps = [sv for sv in sv_status.sv_list if GPS_PRN_START <= sv.prn <= GPS_PRN_END]
        glonass = [
            sv for sv in sv_status.sv_list if GLONASS_PRN_START <= sv.prn <= GLONASS_PRN_END
        ]

        sent = self._emit_all(_gsv_sentences("GP", gps))
        sent += self._emit_all(_gsv_sentences("GL", glonass))

        if sv_status.used_in_fix_mask == 0:
            sent += self.send_blank_fix()
        else:
            self.sv_used_mask = sv_status.used_in_fix_mask
            if location_extended.has_dop:
                self.pdop = float(location_extended.pdop)
                self.hdop = float(location_extended.hdop)
                self.vdop = float(location_extended.vdop)
            else:
                self.clear_dop()
        return sent