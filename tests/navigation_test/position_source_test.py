"""
Unit tests for simulated playback, NMEA parsing and the serial GPS source.
"""

from functools import reduce

import pytest
import serial

from conftest import ORIGIN, move
from drive_nav.router import position_source
from drive_nav.router.geo_utils import calculate_bearing
from drive_nav.router.models import LocationUnavailable
from drive_nav.router.position_source import (
    LiveGpsSource, SimulatedPositionSource, nmea_checksum_ok, parse_rmc,
)


def with_checksum(body: str) -> str:
    """Wrap an NMEA body (no '$') with its checksum."""
    checksum = reduce(lambda acc, ch: acc ^ ord(ch), body, 0)
    return f"${body}*{checksum:02X}"


RMC_MUNICH = "$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A"


class TestSimulatedPositionSource:

    @pytest.fixture
    def geometry(self):
        a = ORIGIN
        b = move(a, 0.0, 100)
        c = move(b, 90.0, 100)
        return [a, b, c]

    @pytest.mark.unit
    def test_one_sample_per_point(self, geometry):
        source = SimulatedPositionSource(geometry, sleep=lambda s: None)
        samples = list(source.samples())
        assert len(samples) == len(source) == 3
        assert [s.coord for s in samples] == geometry

    @pytest.mark.unit
    def test_heading_points_at_next(self, geometry):
        source = SimulatedPositionSource(geometry, sleep=lambda s: None)
        samples = list(source.samples())
        assert min(samples[0].heading, 360 - samples[0].heading) < 0.01
        assert samples[1].heading == pytest.approx(90.0, abs=0.1)
        assert samples[1].heading == pytest.approx(
            calculate_bearing(geometry[1].lat, geometry[1].lon, geometry[2].lat, geometry[2].lon)
        )

    @pytest.mark.unit
    def test_last_point_heading_zero(self, geometry):
        source = SimulatedPositionSource(geometry, sleep=lambda s: None)
        assert list(source.samples())[-1].heading == 0.0

    @pytest.mark.unit
    def test_sleeps_between_points_only(self, geometry):
        slept = []
        source = SimulatedPositionSource(geometry, interval_s=0.25, sleep=slept.append)
        list(source.samples())
        assert slept == [0.25, 0.25]

    @pytest.mark.unit
    def test_timestamps_from_clock(self, geometry):
        ticks = iter([10.0, 11.0, 12.0])
        source = SimulatedPositionSource(geometry, sleep=lambda s: None, clock=lambda: next(ticks))
        assert [s.timestamp for s in source.samples()] == [10.0, 11.0, 12.0]

    @pytest.mark.unit
    def test_close_stops_playback(self, geometry):
        source = SimulatedPositionSource(geometry, sleep=lambda s: None)
        seen = []
        for sample in source.samples():
            seen.append(sample)
            source.close()
        assert len(seen) == 1

    @pytest.mark.unit
    def test_single_point(self):
        source = SimulatedPositionSource([ORIGIN], sleep=lambda s: pytest.fail("should not sleep"))
        samples = list(source.samples())
        assert len(samples) == 1
        assert samples[0].heading == 0.0


class TestNmea:

    @pytest.mark.unit
    def test_known_checksum(self):
        assert nmea_checksum_ok(RMC_MUNICH)

    @pytest.mark.unit
    def test_bad_checksum(self):
        assert not nmea_checksum_ok(RMC_MUNICH[:-2] + "00")

    @pytest.mark.unit
    @pytest.mark.parametrize("sentence", ["", "GPRMC,no,dollar*00", "$GPRMC,no,star"])
    def test_malformed_checksum(self, sentence):
        assert not nmea_checksum_ok(sentence)

    @pytest.mark.unit
    def test_parse_rmc(self):
        sample = parse_rmc(RMC_MUNICH, timestamp=5.0)
        assert sample.lat == pytest.approx(48 + 7.038 / 60)
        assert sample.lon == pytest.approx(11 + 31.0 / 60)
        assert sample.heading == pytest.approx(84.4)
        assert sample.timestamp == 5.0

    @pytest.mark.unit
    def test_gnrmc_southern_western(self):
        sentence = with_checksum("GNRMC,010203,A,3352.000,S,15112.000,W,000.0,,010120,,,A")
        sample = parse_rmc(sentence, timestamp=0.0)
        assert sample.lat == pytest.approx(-(33 + 52.0 / 60))
        assert sample.lon == pytest.approx(-(151 + 12.0 / 60))
        assert sample.heading is None

    @pytest.mark.unit
    def test_void_fix_ignored(self):
        assert parse_rmc(with_checksum("GPRMC,123519,V,,,,,,,230394,,")) is None

    @pytest.mark.unit
    def test_other_sentences_ignored(self):
        assert parse_rmc(with_checksum("GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,")) is None

    @pytest.mark.unit
    def test_bad_checksum_ignored(self):
        assert parse_rmc(RMC_MUNICH[:-2] + "00") is None

    @pytest.mark.unit
    def test_garbage_fields_ignored(self):
        assert parse_rmc(with_checksum("GPRMC,123519,A,48x7.038,N,01131.000,E,022.4,084.4,230394,003.1,W")) is None


class FakeSerial:
    """Stands in for serial.Serial; replays canned lines."""

    instances = []

    def __init__(self, port, baudrate, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.lines = []
        self.error = None
        self.closed = False
        FakeSerial.instances.append(self)

    def readline(self):
        if self.error is not None:
            raise self.error
        return self.lines.pop(0) if self.lines else b""

    def close(self):
        self.closed = True


class TestLiveGpsSource:

    @pytest.fixture
    def queued(self, monkeypatch):
        """Serial class whose ports start with a queue of NMEA lines."""
        lines = [
            b"",
            with_checksum("GPGSV,3,1,11,03,03,111,00").encode() + b"\r\n",
            b"\xff\xfe garbage\r\n",
            RMC_MUNICH.encode() + b"\r\n",
            with_checksum("GNRMC,010203,A,3352.000,S,15112.000,E,000.0,270.0,010120,,,A").encode() + b"\r\n",
        ]

        class QueuedSerial(FakeSerial):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                self.lines = list(lines)

        FakeSerial.instances = []
        monkeypatch.setattr(position_source.serial, "Serial", QueuedSerial)
        return QueuedSerial

    @pytest.mark.unit
    def test_skips_noise_and_closes_port(self, queued):
        source = LiveGpsSource("/dev/ttyUSB0", baudrate=4800)
        gen = source.samples()
        a = next(gen)
        b = next(gen)
        gen.close()

        assert a.lat == pytest.approx(48 + 7.038 / 60)
        assert b.heading == pytest.approx(270.0)
        port = FakeSerial.instances[0]
        assert (port.port, port.baudrate) == ("/dev/ttyUSB0", 4800)
        assert FakeSerial.instances[0].closed

    @pytest.mark.unit
    def test_close_ends_stream(self, queued):
        source = LiveGpsSource("/dev/ttyUSB0")
        seen = []
        for sample in source.samples():
            seen.append(sample)
            source.close()
        assert len(seen) == 1
        assert FakeSerial.instances[0].closed

    @pytest.mark.unit
    def test_open_failure(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise serial.SerialException("could not open port")

        monkeypatch.setattr(position_source.serial, "Serial", refuse)
        with pytest.raises(LocationUnavailable):
            next(LiveGpsSource("/dev/missing").samples())

    @pytest.mark.unit
    def test_persistent_read_errors(self, monkeypatch):
        class BrokenSerial(FakeSerial):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                self.error = serial.SerialException("device reports readiness to read but returned no data")

        FakeSerial.instances = []
        monkeypatch.setattr(position_source.serial, "Serial", BrokenSerial)
        source = LiveGpsSource("/dev/ttyUSB0", max_consecutive_errors=4)
        with pytest.raises(LocationUnavailable):
            next(source.samples())
        assert FakeSerial.instances[0].closed
