# position_source.py
# Producers of PositionSample streams: simulated playback along a route's
# own geometry, and a live NMEA GPS on a serial port.
# Both expose samples() (a generator) and close().

import logging
import time
from typing import Callable, Iterator, Optional, Sequence

import serial

from .geo_utils import calculate_bearing
from .models import Coord, LocationUnavailable, PositionSample

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Simulated playback
# ---------------------------------------------------------------------------

class SimulatedPositionSource:
    """
    Replays route geometry at a fixed cadence, one sample per point.

    Heading is the bearing to the next point. The last point has no successor
    and is paired with itself, so its heading is 0.0.

    Args:
        geometry:   Points to replay, usually Route.geometry.
        interval_s: Pause between two samples.
        sleep:      Sleep function; tests pass a no-op.
        clock:      Timestamp source.
    """

    def __init__(
        self,
        geometry: Sequence[Coord],
        interval_s: float = 0.6,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._points = list(geometry)
        self.interval_s = interval_s
        self._sleep = sleep
        self._clock = clock
        self._closed = False

    def __len__(self) -> int:
        return len(self._points)

    def samples(self) -> Iterator[PositionSample]:
        points = self._points
        for i, p in enumerate(points):
            if self._closed:
                logger.info(f"Simulation closed at point {i}/{len(points)}.")
                return
            nxt = points[i + 1] if i + 1 < len(points) else p
            yield PositionSample(
                lat=p.lat,
                lon=p.lon,
                timestamp=self._clock(),
                heading=calculate_bearing(p.lat, p.lon, nxt.lat, nxt.lon),
            )
            if i + 1 < len(points):
                self._sleep(self.interval_s)

    def close(self) -> None:
        self._closed = True


# ---------------------------------------------------------------------------
# NMEA parsing
# ---------------------------------------------------------------------------

def nmea_checksum_ok(sentence: str) -> bool:
    """Checksum is the XOR of every character between '$' and '*'."""
    if not sentence.startswith("$") or "*" not in sentence:
        return False
    data_part, checksum = sentence.rsplit("*", 1)
    calc = 0
    for char in data_part[1:]:
        calc ^= ord(char)
    return f"{calc:02X}" == checksum.strip().upper()


def parse_rmc(sentence: str, timestamp: Optional[float] = None) -> Optional[PositionSample]:
    """
    Parse a GPRMC/GNRMC sentence into a PositionSample.

    Format: $GPRMC,time,status,lat,N/S,lon,E/W,speed,course,date,mag,mode*checksum

    Returns:
        PositionSample, or None for other sentences, bad checksums and
        sentences without a valid fix.
    """
    sentence = sentence.strip()
    if not (sentence.startswith("$GPRMC") or sentence.startswith("$GNRMC")):
        return None
    if not nmea_checksum_ok(sentence):
        logger.debug(f"Dropping NMEA sentence with bad checksum: {sentence}")
        return None

    parts = sentence.split("*", 1)[0].split(",")
    if len(parts) < 10 or parts[2] != "A":
        return None

    try:
        lat_str, lat_dir = parts[3], parts[4]
        lon_str, lon_dir = parts[5], parts[6]
        if not lat_str or not lon_str:
            return None

        # DDMM.MMMM / DDDMM.MMMM
        lat = float(lat_str[:2]) + float(lat_str[2:]) / 60.0
        lon = float(lon_str[:3]) + float(lon_str[3:]) / 60.0
        if lat_dir == "S":
            lat = -lat
        if lon_dir == "W":
            lon = -lon

        heading = float(parts[8]) if parts[8] else None
    except (ValueError, IndexError):
        return None

    return PositionSample(
        lat=lat,
        lon=lon,
        timestamp=time.time() if timestamp is None else timestamp,
        heading=heading,
    )


# ---------------------------------------------------------------------------
# Live serial GPS
# ---------------------------------------------------------------------------

class LiveGpsSource:
    """
    Reads RMC fixes from an NMEA GPS receiver over a serial port.

    Args:
        port:     Serial device, e.g. "/dev/ttyUSB0".
        baudrate: Receiver baud rate.
        timeout:  Read timeout in seconds.
        max_consecutive_errors: Serial errors tolerated before giving up.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        timeout: float = 1.0,
        max_consecutive_errors: int = 10,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.max_consecutive_errors = max_consecutive_errors
        self._serial: Optional[serial.Serial] = None
        self._running = False

    def samples(self) -> Iterator[PositionSample]:
        """
        Yield one sample per valid RMC sentence until close() is called.

        Raises:
            LocationUnavailable: the port cannot be opened or keeps failing.
        """
        try:
            self._serial = serial.Serial(self.port, self.baudrate, timeout=self.timeout)
        except serial.SerialException as e:
            raise LocationUnavailable(f"Cannot open GPS on {self.port}: {e}") from e

        logger.info(f"GPS opened on {self.port} @ {self.baudrate} baud.")
        self._running = True
        consecutive_errors = 0
        try:
            while self._running:
                try:
                    raw = self._serial.readline()
                except serial.SerialException as e:
                    consecutive_errors += 1
                    if consecutive_errors == 3:
                        logger.warning(f"GPS: serial error: {e}")
                    if consecutive_errors >= self.max_consecutive_errors:
                        raise LocationUnavailable(f"GPS on {self.port} stopped responding: {e}") from e
                    continue

                consecutive_errors = 0
                if not raw:
                    continue
                sample = parse_rmc(raw.decode("ascii", errors="ignore"))
                if sample is not None:
                    yield sample
        finally:
            self._close_port()

    def close(self) -> None:
        self._running = False

    def _close_port(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            except serial.SerialException as e:
                logger.warning(f"GPS: error closing {self.port}: {e}")
            self._serial = None
