import calendar

import pytest

from locengine.nmea import BLANK_FIX_SENTENCES, LocationExtended, NmeaReporter, put_checksum
from locengine.nmea_position import Location, generate_pos


def fields(sentence):
    body = sentence[1:sentence.index("*")]
    return body.split(",")


def body_of(sentence):
    return sentence[:sentence.index("*")]


def by_type(sentences):
    return {fields(s)[0]: s for s in sentences}


def make_reporter(standalone=True):
    received = []
    reporter = NmeaReporter(lambda now, s: received.append(s), standalone)
    return reporter, received


def fix(**kwargs):
    base = dict(timestamp=0, latitude=10.0, longitude=20.0)
    base.update(kwargs)
    return Location(**base)


def test_blank_report_when_not_generating():
    reporter, received = make_reporter()
    reporter.pdop = reporter.hdop = reporter.vdop = 2.0
    sent = generate_pos(reporter, fix(), LocationExtended(), False)
    assert sent == [put_checksum(s) for s in BLANK_FIX_SENTENCES]
    assert received == sent
    assert reporter.pdop == 0 and reporter.hdop == 0 and reporter.vdop == 0


def test_sentence_order_and_checksums():
    reporter, received = make_reporter()
    sent = generate_pos(reporter, fix(), LocationExtended())
    assert [fields(s)[0] for s in sent] == ["GPGSA", "GPVTG", "GPRMC", "GPGGA"]
    assert received == sent
    for sentence in sent:
        assert put_checksum(body_of(sentence)) == sentence


def test_gsa_lists_used_satellites_and_clears_mask():
    reporter, _ = make_reporter()
    reporter.sv_used_mask = 0b1011
    gsa = fields(by_type(generate_pos(reporter, fix(), LocationExtended()))["GPGSA"])
    assert gsa[1] == "A"
    assert gsa[2] == "2"
    assert gsa[3:6] == ["01", "02", "04"]
    assert gsa[6:15] == [""] * 9
    assert gsa[15:18] == ["", "", ""]
    assert reporter.sv_used_mask == 0


@pytest.mark.parametrize("mask, fix_type", [(0, "1"), (0b111, "2"), (0b1111, "3")])
def test_gsa_fix_type(mask, fix_type):
    reporter, _ = make_reporter()
    reporter.sv_used_mask = mask
    gsa = fields(by_type(generate_pos(reporter, fix(), LocationExtended()))["GPGSA"])
    assert gsa[2] == fix_type


def test_gsa_holds_at_most_twelve_satellites():
    reporter, _ = make_reporter()
    reporter.sv_used_mask = (1 << 20) - 1
    sent = by_type(generate_pos(reporter, fix(), LocationExtended()))
    gsa = fields(sent["GPGSA"])
    assert gsa[3:15] == [f"{n:02d}" for n in range(1, 13)]
    assert fields(sent["GPGGA"])[7] == "20"


def test_dop_from_extended_location():
    reporter, _ = make_reporter()
    extended = LocationExtended(pdop=1.5, hdop=0.8, vdop=1.2)
    sent = by_type(generate_pos(reporter, fix(), extended))
    assert fields(sent["GPGSA"])[15:18] == ["1.5", "0.8", "1.2"]
    assert fields(sent["GPGGA"])[8] == "0.8"


def test_cached_dop_used_then_cleared():
    reporter, _ = make_reporter()
    reporter.pdop, reporter.hdop, reporter.vdop = 2.5, 1.5, 3.5
    sent = by_type(generate_pos(reporter, fix(), LocationExtended()))
    assert fields(sent["GPGSA"])[15:18] == ["2.5", "1.5", "3.5"]
    assert fields(sent["GPGGA"])[8] == "1.5"
    assert reporter.pdop == 0 and reporter.hdop == 0 and reporter.vdop == 0


def test_vtg_bearing_and_speed():
    reporter, _ = make_reporter()
    extended = LocationExtended(magnetic_deviation=5.0)
    sent = by_type(generate_pos(reporter, fix(bearing=90.0, speed=10.0), extended))
    vtg = fields(sent["GPVTG"])
    assert vtg[1] == "90.0" and vtg[2] == "T"
    assert vtg[3] == vtg[1] and vtg[4] == "M"
    assert abs(float(vtg[5]) - 10.0 * 3600.0 / 1852.0) <= 0.05
    assert vtg[6] == "N"
    assert abs(float(vtg[7]) - 36.0) <= 0.05
    assert vtg[8] == "K"


def test_vtg_without_bearing_or_speed():
    reporter, _ = make_reporter()
    vtg = fields(by_type(generate_pos(reporter, fix(), LocationExtended()))["GPVTG"])
    assert vtg[1:9] == ["", "T", "", "M", "", "N", "", "K"]


@pytest.mark.parametrize(
    "standalone, location, mode, quality",
    [
        (True, fix(), "A", "1"),
        (False, fix(), "D", "2"),
        (True, Location(timestamp=0), "N", "0"),
    ],
)
def test_mode_and_quality(standalone, location, mode, quality):
    reporter, _ = make_reporter(standalone)
    sent = by_type(generate_pos(reporter, location, LocationExtended()))
    assert fields(sent["GPVTG"])[-1] == mode
    assert fields(sent["GPRMC"])[-1] == mode
    assert fields(sent["GPGGA"])[6] == quality


def test_rmc_time_and_date():
    reporter, _ = make_reporter()
    timestamp = calendar.timegm((2014, 3, 5, 12, 34, 56, 0, 0, 0)) * 1000 + 789
    sent = by_type(generate_pos(reporter, fix(timestamp=timestamp), LocationExtended()))
    rmc = fields(sent["GPRMC"])
    assert rmc[1] == "123456"
    assert rmc[2] == "A"
    assert rmc[9] == "050314"
    assert fields(sent["GPGGA"])[1] == "123456"


def test_latitude_and_longitude_encoding():
    reporter, _ = make_reporter()
    location = fix(latitude=-33.5, longitude=151.25)
    sent = by_type(generate_pos(reporter, location, LocationExtended()))
    rmc = fields(sent["GPRMC"])
    assert rmc[3:7] == ["3330.000000", "S", "15115.000000", "E"]
    gga = fields(sent["GPGGA"])
    assert gga[2:6] == rmc[3:7]


def test_no_position_leaves_coordinates_empty():
    reporter, _ = make_reporter()
    sent = by_type(generate_pos(reporter, Location(timestamp=0), LocationExtended()))
    assert fields(sent["GPRMC"])[3:7] == ["", "", "", ""]
    assert fields(sent["GPGGA"])[2:6] == ["", "", "", ""]


def test_rmc_magnetic_variation_west():
    reporter, _ = make_reporter()
    extended = LocationExtended(magnetic_deviation=-3.0)
    rmc = fields(by_type(generate_pos(reporter, fix(), extended))["GPRMC"])
    assert rmc[10:12] == ["3.0", "W"]


def test_gga_altitudes():
    reporter, _ = make_reporter()
    extended = LocationExtended(altitude_mean_sea_level=60.0)
    gga = fields(by_type(generate_pos(reporter, fix(altitude=100.0), extended))["GPGGA"])
    assert gga[9:14] == ["60.0", "M", "40.0", "M", ""]


def test_gga_without_altitude():
    reporter, _ = make_reporter()
    extended = LocationExtended(altitude_mean_sea_level=60.0)
    gga = fields(by_type(generate_pos(reporter, fix(), extended))["GPGGA"])
    assert gga[9:11] == ["60.0", "M"]
    assert gga[11:14] == ["", "", ""]


def test_oversized_sentence_raises():
    reporter, received = make_reporter()
    extended = LocationExtended(altitude_mean_sea_level=1e250)
    with pytest.raises(ValueError):
        generate_pos(reporter, fix(), extended)
    assert [fields(s)[0] for s in received] == ["GPGSA", "GPVTG", "GPRMC"]