"""
Range Raster Builder

This module turns the packets of one completed sweep into a dense raster
with one row per beam and one column per measurement column. Each cell holds
three float32 channels:

    channel 0  range         [m]
    channel 1  reflectivity  [sensor counts]
    channel 2  azimuth       [rad], column angle plus the beam azimuth offset

Cells of columns whose status word is not the all-valid sentinel stay NaN
in every channel. The raster carries the per-beam altitude angles as sidecar
metadata so that it can be projected without the calibration snapshot.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .packet import COLUMNS_PER_PACKET, PIXELS_PER_COLUMN, RANGE_MASK, VALID_COLUMN, PacketView, encoder_to_angle

logger = logging.getLogger(__name__)

RANGE_FACTOR = 0.001  # [m/mm] raw range units to metres
NO_RETURN = np.float32(np.nan)

RANGE_CHANNEL = 0
REFLECTIVITY_CHANNEL = 1
AZIMUTH_CHANNEL = 2


@dataclass(eq=False)
class Raster:
    """
    Dense per-beam, per-column grid of one sweep.

    :param image:           float32 array of shape (rows, cols, 3), channels [range, reflectivity, azimuth].
    :param altitude_angles: Per-row beam altitude angle [rad], row 0 is the top beam.
    """
    image: np.ndarray
    altitude_angles: np.ndarray

    def __post_init__(self):
        self.image = np.asarray(self.image, dtype=np.float32)
        self.altitude_angles = np.asarray(self.altitude_angles, dtype=float).reshape(-1)
        if self.image.ndim != 3 or self.image.shape[2] != 3:
            raise ValueError("image must have shape (rows, cols, 3).")
        if self.altitude_angles.shape != (self.image.shape[0],):
            raise ValueError("altitude_angles must hold one angle per raster row.")

    @property
    def rows(self):
        return self.image.shape[0]

    @property
    def cols(self):
        return self.image.shape[1]

    @property
    def range(self):
        return self.image[:, :, RANGE_CHANNEL]

    @property
    def reflectivity(self):
        return self.image[:, :, REFLECTIVITY_CHANNEL]

    @property
    def azimuth(self):
        return self.image[:, :, AZIMUTH_CHANNEL]

    def valid_mask(self):
        """Boolean (rows, cols) mask of cells holding a return."""
        return ~np.isnan(self.range)


def build_raster(packets, sensor_info):
    """
    Build the raster of one sweep from its packets.

    Column c of packet i lands at raster column i * COLUMNS_PER_PACKET + c, so
    the raster width is len(packets) * COLUMNS_PER_PACKET. For every valid
    column and beam row r:

        range        = raw_range * RANGE_FACTOR
        reflectivity = raw_reflectivity
        azimuth      = h_angle(column) + beam_azimuth_angles[r]

    The output depends only on packet content and calibration.

    :param packets:     Sequence of PacketView (or raw packet buffers) in sweep order.
    :param sensor_info: SensorInfo calibration snapshot.

    :return: Raster with rows = beam count and cols = len(packets) * COLUMNS_PER_PACKET.
    :raises ValueError: If the calibration does not describe PIXELS_PER_COLUMN beams.
    :raises DecodeError: If a raw buffer is too short to be a packet.
    """
    altitude = np.asarray(sensor_info.beam_altitude_angles, dtype=float)
    azimuth_offsets = np.asarray(sensor_info.beam_azimuth_angles, dtype=float)
    if altitude.size != PIXELS_PER_COLUMN or azimuth_offsets.size != PIXELS_PER_COLUMN:
        raise ValueError(f"calibration must describe {PIXELS_PER_COLUMN} beams.")

    views = [packet if isinstance(packet, PacketView) else PacketView(packet) for packet in packets]
    width = len(views) * COLUMNS_PER_PACKET

    # Every cell starts as a no-return and is only overwritten by valid columns
    image = np.full((PIXELS_PER_COLUMN, width, 3), NO_RETURN, dtype=np.float32)

    for ibuf, view in enumerate(views):
        columns = view.columns
        valid = columns["status"] == VALID_COLUMN
        if not valid.all():
            logger.debug("Got %d invalid data blocks in packet %d", int((~valid).sum()), ibuf)
        if not valid.any():
            continue

        col_index = ibuf * COLUMNS_PER_PACKET + np.flatnonzero(valid)  # absolute raster columns
        pixels = columns["pixels"][valid]  # (n_valid, beams)
        h_angle = encoder_to_angle(columns["encoder_count"][valid])  # [rad] per valid column

        # Transpose so that beams run along the raster rows
        image[:, col_index, RANGE_CHANNEL] = (pixels["range"] & RANGE_MASK).T * RANGE_FACTOR
        image[:, col_index, REFLECTIVITY_CHANNEL] = pixels["reflectivity"].T
        image[:, col_index, AZIMUTH_CHANNEL] = h_angle[np.newaxis, :] + azimuth_offsets[:, np.newaxis]

    return Raster(image=image, altitude_angles=altitude.copy())
