"""Position-report NMEA sentences: $GPGSA, $GPVTG, $GPRMC and $GPGGA."""

from __future__ import annotations

import logging
import math
import struct
import time
from dataclasses import dataclass
from typing import List, Optional

from locengine.nmea import LocationExtended, NmeaReporter, put_checksum

log = logging.getLogger(__name__)

MAX_USED_SATELLITES = 32
GSA_SATELLITE_FIELDS = 12
KNOTS_PER_METRE_PER_SECOND = 3600.0 / 1852.0
KMH_PER_METRE_PER_SECOND = 3.6


@dataclass
class Location:
    """A position fix; a field left as None is not available.

    ``timestamp`` is the UTC time of the fix in milliseconds since the epoch.
    """

    timestamp: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    bearing: Optional[float] = None

    @property
    def has_lat_long(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def _f32(value: float) -> float:
    """Round a double to single precision, as storing it in a float does."""
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _used_satellites(mask: int) -> List[int]:
    used = []
    number = 1
    while mask > 0 and len(used) < MAX_USED_SATELLITES:
        if mask & 1:
            used.append(number)
        mask >>= 1
        number += 1
    return used


def _lat_long_fields(location: Location) -> str:
    if not location.has_lat_long:
        return ",,,,"
    latitude = float(location.latitude)
    longitude = float(location.longitude)
    if latitude > 0:
        lat_hemisphere = "N"
    else:
        lat_hemisphere = "S"
        latitude = -latitude
    if longitude < 0:
        lon_hemisphere = "W"
        longitude = -longitude
    else:
        lon_hemisphere = "E"
    lat_minutes = math.fmod(latitude * 60.0, 60.0)
    lon_minutes = math.fmod(longitude * 60.0, 60.0)
    lat_degrees = math.floor(latitude) & 0xFF
    lon_degrees = math.floor(longitude) & 0xFF
    return (
        f"{lat_degrees:02d}{lat_minutes:09.6f},{lat_hemisphere},"
        f"{lon_degrees:03d}{lon_minutes:09.6f},{lon_hemisphere},"
    )


def _utc_fields(timestamp_ms: int) -> time.struct_time:
    seconds = abs(timestamp_ms) // 1000
    if timestamp_ms < 0:
        seconds = -seconds
    return time.gmtime(seconds)


def _emit(reporter: NmeaReporter, body: str, sent: List[str]) -> None:
    sentence = put_checksum(body)
    reporter.send(sentence)
    sent.append(sentence)


def generate_pos(
    reporter: NmeaReporter,
    location: Location,
    location_extended: LocationExtended,
    generate_nmea: bool = True,
) -> List[str]:
    """Send the sentences for one position report and return them in order.

    With ``generate_nmea`` false a blank fix is sent instead. The used-in-fix
    mask cached by the reporter is consumed, and its DOP cache is cleared
    afterwards. Raises ValueError if a sentence grows past the NMEA limit.
    """
    sent: List[str] = []

    if generate_nmea:
        utc = _utc_fields(location.timestamp)
        clock = f"{utc.tm_hour:02d}{utc.tm_min:02d}{utc.tm_sec:02d}"
        date = f"{utc.tm_mday:02d}{utc.tm_mon:02d}{utc.tm_year % 100:02d}"

        used = _used_satellites(reporter.sv_used_mask)
        reporter.sv_used_mask = 0

        if not location.has_lat_long:
            mode = "N"
            quality = "0"
        elif reporter.standalone:
            mode = "A"
            quality = "1"
        else:
            mode = "D"
            quality = "2"

        # $GPGSA
        if not used:
            fix_type = "1"
        elif len(used) <= 3:
            fix_type = "2"
        else:
            fix_type = "3"
        parts = [f"$GPGSA,A,{fix_type},"]
        for slot in range(GSA_SATELLITE_FIELDS):
            parts.append(f"{used[slot]:02d}," if slot < len(used) else ",")
        if location_extended.has_dop:
            parts.append(
                f"{location_extended.pdop:.1f},"
                f"{location_extended.hdop:.1f},"
                f"{location_extended.vdop:.1f}"
            )
        elif reporter.has_cached_dop:
            parts.append(f"{reporter.pdop:.1f},{reporter.hdop:.1f},{reporter.vdop:.1f}")
        else:
            parts.append(",,")
        _emit(reporter, "".join(parts), sent)

        # $GPVTG
        if location.bearing is not None:
            # The magnetic track is reported equal to the true track even
            # when a magnetic deviation is known.
            mag_track = location.bearing
            parts = [f"$GPVTG,{location.bearing:.1f},T,{mag_track:.1f},M,"]
        else:
            parts = ["$GPVTG,,T,,M,"]
        if location.speed is not None:
            knots = _f32(location.speed * KNOTS_PER_METRE_PER_SECOND)
            kmh = _f32(location.speed * KMH_PER_METRE_PER_SECOND)
            parts.append(f"{knots:.1f},N,{kmh:.1f},K,")
        else:
            parts.append(",N,,K,")
        parts.append(mode)
        _emit(reporter, "".join(parts), sent)

        # $GPRMC
        parts = [f"$GPRMC,{clock},A,", _lat_long_fields(location)]
        if location.speed is not None:
            knots = _f32(location.speed * KNOTS_PER_METRE_PER_SECOND)
            parts.append(f"{knots:.1f},")
        else:
            parts.append(",")
        parts.append(f"{location.bearing:.1f}," if location.bearing is not None else ",")
        parts.append(f"{date},")
        if location_extended.has_magnetic_deviation:
            variation = _f32(location_extended.magnetic_deviation)
            if variation < 0.0:
                direction = "W"
                variation = -variation
            else:
                direction = "E"
            parts.append(f"{variation:.1f},{direction},")
        else:
            parts.append(",,")
        parts.append(mode)
        _emit(reporter, "".join(parts), sent)

        # $GPGGA
        parts = [f"$GPGGA,{clock},", _lat_long_fields(location)]
        if location_extended.has_dop:
            parts.append(f"{quality},{len(used):02d},{location_extended.hdop:.1f},")
        elif reporter.has_cached_dop:
            parts.append(f"{quality},{len(used):02d},{reporter.hdop:.1f},")
        else:
            parts.append(f"{quality},{len(used):02d},,")
        if location_extended.has_altitude_mean_sea_level:
            parts.append(f"{location_extended.altitude_mean_sea_level:.1f},M,")
        else:
            parts.append(",,")
        if location.altitude is not None and location_extended.has_altitude_mean_sea_level:
            separation = location.altitude - location_extended.altitude_mean_sea_level
            parts.append(f"{separation:.1f},M,,")
        else:
            parts.append(",,,")
        _emit(reporter, "".join(parts), sent)
    else:
        sent.extend(reporter.send_blank_fix())

    reporter.clear_dop()
    return sent