"""
Sensor Calibration Snapshot

This module holds the per-beam geometry of the sensor (beam altitude and
azimuth offset angles) together with the descriptive fields reported next to
it (lidar mode, hostname, IMU and lidar mounting transforms).

Calibration is requested once at startup from an external provider. The
provider reports angles in degrees; they are converted to radians exactly
once, when the SensorInfo snapshot is built, and the resulting arrays are
read-only. When the provider cannot be reached the nominal OS1-64 table is
used instead and a warning is logged.

The primary entry points are:
    load_sensor_info()        Query a provider, falling back to the default table.
    default_sensor_info()     Nominal calibration shipped with the decoder.
    metadata_file_provider()  Provider reading the sensor's JSON metadata file.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from .math_utils import _as_angle_array, _as_transform, _deg2rad, _readonly
from .packet import PIXELS_PER_COLUMN

logger = logging.getLogger(__name__)


class CalibrationUnavailable(RuntimeError):
    """Raised by a calibration provider that cannot deliver sensor info."""


class LidarMode(Enum):
    """Horizontal resolution and rotation rate of the sensor, e.g. 1024x10."""
    MODE_512x10 = "512x10"
    MODE_512x20 = "512x20"
    MODE_1024x10 = "1024x10"
    MODE_1024x20 = "1024x20"
    MODE_2048x10 = "2048x10"

    @property
    def columns(self):
        """Columns per full revolution."""
        return int(self.value.split("x")[0])

    @property
    def frequency(self):
        """Rotation rate [Hz]."""
        return int(self.value.split("x")[1])

    def __str__(self):
        return self.value


def lidar_mode_of_string(text):
    """
    Parse a lidar mode string such as "1024x10".

    :param text: Mode string reported by the sensor.
    :return: Matching LidarMode.
    :raises ValueError: If the string does not name a known mode.
    """
    try:
        return LidarMode(str(text).strip())
    except ValueError:
        raise ValueError(f"unknown lidar mode: {text!r}") from None


# Nominal beam altitude angles [deg], top beam first
DEFAULT_BEAM_ALTITUDE_ANGLES = (
    16.611, 16.084, 15.557, 15.029, 14.502, 13.975, 13.447, 12.920,
    12.393, 11.865, 11.338, 10.811, 10.283, 9.756, 9.229, 8.701,
    8.174, 7.646, 7.119, 6.592, 6.064, 5.537, 5.010, 4.482,
    3.955, 3.428, 2.900, 2.373, 1.846, 1.318, 0.791, 0.264,
    -0.264, -0.791, -1.318, -1.846, -2.373, -2.900, -3.428, -3.955,
    -4.482, -5.010, -5.537, -6.064, -6.592, -7.119, -7.646, -8.174,
    -8.701, -9.229, -9.756, -10.283, -10.811, -11.338, -11.865, -12.393,
    -12.920, -13.447, -13.975, -14.502, -15.029, -15.557, -16.084, -16.611,
)

# Nominal beam azimuth offsets [deg], the four staggered emitter columns repeat
DEFAULT_BEAM_AZIMUTH_ANGLES = (3.164, 1.055, -1.055, -3.164) * (PIXELS_PER_COLUMN // 4)

# Row-major 4x4 transforms, translation in [mm]
DEFAULT_IMU_TO_SENSOR_TRANSFORM = (
    1.0, 0.0, 0.0, 6.253,
    0.0, 1.0, 0.0, -11.775,
    0.0, 0.0, 1.0, 7.645,
    0.0, 0.0, 0.0, 1.0,
)
DEFAULT_LIDAR_TO_SENSOR_TRANSFORM = (
    -1.0, 0.0, 0.0, 0.0,
    0.0, -1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 36.180,
    0.0, 0.0, 0.0, 1.0,
)

DEFAULT_MODE = LidarMode.MODE_1024x10
DEFAULT_HOSTNAME = "UNKNOWN"


@dataclass(frozen=True, eq=False)
class SensorInfo:
    """
    Immutable calibration snapshot shared by every raster build and projection.

    Angle arrays are stored in radians and flagged read-only in __post_init__,
    so a snapshot can be handed to any number of consumers without copying.
    Build one from provider output with SensorInfo.from_degrees().

    :param beam_altitude_angles:      Per-beam altitude angle [rad], row 0 is the top beam.
    :param beam_azimuth_angles:       Per-beam azimuth offset [rad].
    :param mode:                      Lidar mode reported by the sensor.
    :param hostname:                  Sensor hostname.
    :param imu_to_sensor_transform:   4x4 transform from IMU to sensor frame [mm].
    :param lidar_to_sensor_transform: 4x4 transform from lidar to sensor frame [mm].
    """
    beam_altitude_angles: np.ndarray
    beam_azimuth_angles: np.ndarray
    mode: LidarMode = DEFAULT_MODE
    hostname: str = DEFAULT_HOSTNAME
    imu_to_sensor_transform: np.ndarray = None
    lidar_to_sensor_transform: np.ndarray = None

    def __post_init__(self):
        # object.__setattr__ is required because the dataclass is frozen.
        altitude = _as_angle_array(self.beam_altitude_angles, "beam_altitude_angles", PIXELS_PER_COLUMN)
        azimuth = _as_angle_array(self.beam_azimuth_angles, "beam_azimuth_angles", PIXELS_PER_COLUMN)
        object.__setattr__(self, "beam_altitude_angles", _readonly(altitude))
        object.__setattr__(self, "beam_azimuth_angles", _readonly(azimuth))

        mode = self.mode if isinstance(self.mode, LidarMode) else lidar_mode_of_string(self.mode)
        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "hostname", str(self.hostname))

        imu = DEFAULT_IMU_TO_SENSOR_TRANSFORM if self.imu_to_sensor_transform is None else self.imu_to_sensor_transform
        lidar = DEFAULT_LIDAR_TO_SENSOR_TRANSFORM if self.lidar_to_sensor_transform is None else self.lidar_to_sensor_transform
        object.__setattr__(self, "imu_to_sensor_transform", _readonly(_as_transform(imu, "imu_to_sensor_transform")))
        object.__setattr__(self, "lidar_to_sensor_transform", _readonly(_as_transform(lidar, "lidar_to_sensor_transform")))

    @property
    def beam_count(self):
        return int(self.beam_altitude_angles.size)

    @classmethod
    def from_degrees(cls, beam_altitude_angles, beam_azimuth_angles, mode=DEFAULT_MODE, hostname=DEFAULT_HOSTNAME,
                     imu_to_sensor_transform=None, lidar_to_sensor_transform=None):
        """
        Build a snapshot from angle tables given in degrees.

        This is the only place where the degree to radian conversion happens.

        :return: SensorInfo with angles in radians.
        """
        return cls(
            beam_altitude_angles=_deg2rad(beam_altitude_angles),
            beam_azimuth_angles=_deg2rad(beam_azimuth_angles),
            mode=mode,
            hostname=hostname,
            imu_to_sensor_transform=imu_to_sensor_transform,
            lidar_to_sensor_transform=lidar_to_sensor_transform,
        )

    @classmethod
    def from_metadata(cls, metadata):
        """
        Build a snapshot from a provider response.

        An unknown lidar mode does not invalidate the angle tables: it is
        logged and replaced by DEFAULT_MODE.

        :param metadata: Mapping with beam_altitude_angles and beam_azimuth_angles [deg],
                         and optionally lidar_mode, hostname, imu_to_sensor_transform
                         and lidar_to_sensor_transform.
        :return: SensorInfo with angles in radians.
        :raises KeyError: If an angle table is missing.
        :raises ValueError: If a field has the wrong shape.
        """
        mode = metadata.get("lidar_mode", DEFAULT_MODE)
        if not isinstance(mode, LidarMode):
            try:
                mode = lidar_mode_of_string(mode)
            except ValueError:
                logger.warning("Unknown lidar mode %r, assuming %s", mode, DEFAULT_MODE)
                mode = DEFAULT_MODE

        return cls.from_degrees(
            metadata["beam_altitude_angles"],
            metadata["beam_azimuth_angles"],
            mode=mode,
            hostname=metadata.get("hostname", DEFAULT_HOSTNAME),
            imu_to_sensor_transform=metadata.get("imu_to_sensor_transform"),
            lidar_to_sensor_transform=metadata.get("lidar_to_sensor_transform"),
        )


def default_sensor_info():
    """Nominal OS1-64 calibration, used when no provider answers."""
    return SensorInfo.from_degrees(
        DEFAULT_BEAM_ALTITUDE_ANGLES,
        DEFAULT_BEAM_AZIMUTH_ANGLES,
        mode=DEFAULT_MODE,
        hostname=DEFAULT_HOSTNAME,
        imu_to_sensor_transform=DEFAULT_IMU_TO_SENSOR_TRANSFORM,
        lidar_to_sensor_transform=DEFAULT_LIDAR_TO_SENSOR_TRANSFORM,
    )


def metadata_file_provider(path):
    """
    Create a provider that reads the sensor's JSON metadata file.

    :param path: Path to the metadata JSON file.
    :return: Zero-argument callable returning the parsed metadata mapping.
    """
    path = Path(path)

    def _provider():
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except OSError as exc:
            raise CalibrationUnavailable(f"cannot read sensor metadata {path}: {exc}") from exc

    return _provider


def load_sensor_info(provider=None):
    """
    Request calibration from a provider, falling back to the default table.

    The provider is a zero-argument callable returning a metadata mapping
    (see SensorInfo.from_metadata). Any exception raised by the provider or
    while reading its response (CalibrationUnavailable, a transport error, a
    malformed mapping) is treated as the calibration being unavailable: a
    warning is logged and default_sensor_info() is returned. Startup never
    fails on calibration.

    :param provider: Calibration provider, or None to use the default table.
    :return: SensorInfo snapshot.
    """
    if provider is None:
        logger.warning("No calibration provider configured, reverting to default calibration")
        sensor_info = default_sensor_info()
    else:
        try:
            sensor_info = SensorInfo.from_metadata(provider())
            logger.info("Read sensor info from calibration provider")
        except Exception as exc:
            logger.warning("Calibration provider failed (%s), reverting to default calibration", exc)
            sensor_info = default_sensor_info()

    logger.info("Hostname: %s", sensor_info.hostname)
    logger.info("Lidar mode: %s", sensor_info.mode)
    return sensor_info
