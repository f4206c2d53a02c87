"""
OS1 Lidar Packet Layout and Accessors

This module describes the fixed binary layout of one OS1 lidar packet and
provides PacketView, a read-only accessor over a received packet buffer.

Packet layout (little endian), repeated for each of the 16 columns:

    Offset | Size     | Type   | Description
    -------|----------|--------|-------------------------------------------
    0      | 8        | uint64 | Timestamp [ns]
    8      | 2        | uint16 | Measurement id (column index within a sweep)
    10     | 2        | uint16 | Frame id
    12     | 4        | uint32 | Encoder count (0 .. 90111 per revolution)
    16     | 64 * 12  | pixel  | One pixel block per beam (see below)
    784    | 4        | uint32 | Status, 0xFFFFFFFF when the column is valid

Pixel block (12 bytes):

    Offset | Size | Type   | Description
    -------|------|--------|-------------------------------------------
    0      | 4    | uint32 | Range [mm], low 20 bits only
    4      | 2    | uint16 | Reflectivity
    6      | 2    | uint16 | Signal photons
    8      | 2    | uint16 | Noise photons
    10     | 2    | uint16 | Unused

PacketView never copies the buffer: scalar fields are read with struct and
per-beam fields are exposed as numpy structured views over the same memory.
"""

import struct
from dataclasses import dataclass

import numpy as np

PIXELS_PER_COLUMN = 64  # beams per column
COLUMNS_PER_PACKET = 16  # columns per lidar packet
PIXEL_BYTES = 12
COLUMN_HEADER_BYTES = 16
COLUMN_STATUS_BYTES = 4
COLUMN_BYTES = COLUMN_HEADER_BYTES + PIXELS_PER_COLUMN * PIXEL_BYTES + COLUMN_STATUS_BYTES  # 788
PACKET_BYTES = COLUMNS_PER_PACKET * COLUMN_BYTES  # 12608

IMU_PACKET_BYTES = 48

ENCODER_TICKS_PER_REV = 90112
VALID_COLUMN = 0xFFFFFFFF  # status value of a column with all beams valid
RANGE_MASK = 0x000FFFFF  # range occupies the low 20 bits of its word

PIXEL_DTYPE = np.dtype([
    ("range", "<u4"),
    ("reflectivity", "<u2"),
    ("signal", "<u2"),
    ("noise", "<u2"),
    ("unused", "<u2"),
])

COLUMN_DTYPE = np.dtype([
    ("timestamp", "<u8"),
    ("measurement_id", "<u2"),
    ("frame_id", "<u2"),
    ("encoder_count", "<u4"),
    ("pixels", PIXEL_DTYPE, (PIXELS_PER_COLUMN,)),
    ("status", "<u4"),
])

_COLUMN_HEADER = struct.Struct("<QHHI")
_UINT32 = struct.Struct("<I")
_UINT16 = struct.Struct("<H")

_STATUS_OFFSET = COLUMN_HEADER_BYTES + PIXELS_PER_COLUMN * PIXEL_BYTES


class DecodeError(ValueError):
    """Raised when a buffer cannot be read as a lidar packet."""


@dataclass(frozen=True, eq=False)
class Column:
    """
    Decoded copy of one column of a lidar packet.

    :param timestamp:      Column timestamp [ns].
    :param measurement_id: Column index within the sweep as counted by the sensor.
    :param frame_id:       Sweep counter reported by the sensor.
    :param encoder_count:  Raw encoder ticks at the time of the measurement.
    :param valid:          True when the status word equals VALID_COLUMN.
    :param h_angle:        Horizontal angle of the column [rad].
    :param ranges:         Per-beam range [mm], already masked to 20 bits.
    :param reflectivity:   Per-beam reflectivity.
    """
    timestamp: int
    measurement_id: int
    frame_id: int
    encoder_count: int
    valid: bool
    h_angle: float
    ranges: np.ndarray
    reflectivity: np.ndarray


def encoder_to_angle(encoder_count):
    """
    Convert encoder ticks to a horizontal angle.

    h_angle = 2 * pi * encoder_count / ENCODER_TICKS_PER_REV

    Works on scalars and numpy arrays alike.

    :param encoder_count: Encoder ticks.
    :return: Horizontal angle [rad].
    """
    return 2.0 * np.pi * np.asarray(encoder_count, dtype=float) / ENCODER_TICKS_PER_REV


class PacketView:
    """
    Read-only accessor over one lidar packet buffer.

    The buffer length is checked once at construction; every accessor after
    that only reads inside the first PACKET_BYTES bytes. Buffers longer than
    PACKET_BYTES are accepted and the trailing bytes ignored.
    """
    def __init__(self, buf):
        """
        :param buf: bytes, bytearray, memoryview or any object exposing the buffer protocol.
        :raises DecodeError: If the buffer is shorter than PACKET_BYTES.
        """
        try:
            view = memoryview(buf).cast("B")
        except TypeError as exc:
            raise DecodeError(f"lidar packet must be a bytes-like object, got {type(buf).__name__}") from exc

        if view.nbytes < PACKET_BYTES:
            raise DecodeError(f"lidar packet too short: expected {PACKET_BYTES} bytes, got {view.nbytes}")

        self.buf = view[:PACKET_BYTES]
        self._columns = None

    def __len__(self):
        return COLUMNS_PER_PACKET

    def copy(self):
        """
        Return a PacketView over a private copy of the packet bytes.

        The copy no longer references the source buffer, so the source may be
        reused or resized afterwards.
        """
        return PacketView(self.buf.tobytes())

    @property
    def columns(self):
        """
        All columns of the packet as a structured numpy array.

        The array has dtype COLUMN_DTYPE and shape (COLUMNS_PER_PACKET,), and
        shares memory with the packet buffer. It is read-only.
        """
        if self._columns is None:
            columns = np.frombuffer(self.buf, dtype=COLUMN_DTYPE, count=COLUMNS_PER_PACKET)
            columns.setflags(write=False)
            self._columns = columns
        return self._columns

    def _col_offset(self, col):
        if not 0 <= col < COLUMNS_PER_PACKET:
            raise IndexError(f"column index {col} out of range [0, {COLUMNS_PER_PACKET})")
        return col * COLUMN_BYTES

    def _px_offset(self, col, px):
        if not 0 <= px < PIXELS_PER_COLUMN:
            raise IndexError(f"pixel index {px} out of range [0, {PIXELS_PER_COLUMN})")
        return self._col_offset(col) + COLUMN_HEADER_BYTES + px * PIXEL_BYTES

    def _header(self, col):
        return _COLUMN_HEADER.unpack_from(self.buf, self._col_offset(col))

    def timestamp(self, col):
        return self._header(col)[0]

    def measurement_id(self, col):
        return self._header(col)[1]

    def frame_id(self, col):
        return self._header(col)[2]

    def encoder_count(self, col):
        return self._header(col)[3]

    def h_angle(self, col):
        """Horizontal angle of a column [rad]."""
        return float(encoder_to_angle(self.encoder_count(col)))

    def status(self, col):
        return _UINT32.unpack_from(self.buf, self._col_offset(col) + _STATUS_OFFSET)[0]

    def valid(self, col):
        """True iff the column status word equals the all-valid sentinel."""
        return self.status(col) == VALID_COLUMN

    def px_range(self, col, px):
        """Range of one beam [mm], masked to the 20 bit range field."""
        return _UINT32.unpack_from(self.buf, self._px_offset(col, px))[0] & RANGE_MASK

    def px_reflectivity(self, col, px):
        return _UINT16.unpack_from(self.buf, self._px_offset(col, px) + 4)[0]

    def px_signal(self, col, px):
        return _UINT16.unpack_from(self.buf, self._px_offset(col, px) + 6)[0]

    def px_noise(self, col, px):
        return _UINT16.unpack_from(self.buf, self._px_offset(col, px) + 8)[0]

    def column(self, col):
        """
        Decode a full column into a Column record.

        :param col: Column index within the packet.
        :return: Column with header fields, validity, angle and per-beam arrays.
        """
        timestamp, measurement_id, frame_id, encoder_count = self._header(col)
        pixels = self.columns[col]["pixels"]
        return Column(
            timestamp=timestamp,
            measurement_id=measurement_id,
            frame_id=frame_id,
            encoder_count=encoder_count,
            valid=self.valid(col),
            h_angle=float(encoder_to_angle(encoder_count)),
            ranges=pixels["range"] & RANGE_MASK,
            reflectivity=pixels["reflectivity"].copy(),
        )

    def __iter__(self):
        for col in range(COLUMNS_PER_PACKET):
            yield self.column(col)
