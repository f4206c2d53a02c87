"""
Fixtures shared by the decoder test modules.
"""

import numpy as np
import pytest

from os1_decoder.calibration import SensorInfo, default_sensor_info
from os1_decoder.packet import PIXELS_PER_COLUMN


@pytest.fixture
def sensor_info():
    """Nominal OS1-64 calibration."""
    return default_sensor_info()


@pytest.fixture
def flat_sensor_info():
    """Calibration with every beam at zero altitude and zero azimuth offset."""
    return SensorInfo(
        beam_altitude_angles=np.zeros(PIXELS_PER_COLUMN),
        beam_azimuth_angles=np.zeros(PIXELS_PER_COLUMN),
    )
