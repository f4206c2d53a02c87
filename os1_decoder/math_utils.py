"""
Math Utilities Module

This module provides helper functions for the array handling shared by the
decoder pipeline. It covers validation of per-beam angle tables and 4x4
homogeneous transforms, degree to radian conversion of calibration data,
read-only array snapshots, and rounding of sweep widths to whole packets.

All functions here ensure consistent treatment of list, tuple and numpy
inputs so that the calibration snapshot and the projection code can rely on
float64 arrays of a known shape.
"""

import numpy as np


def _as_angle_array(value, name, size=None):
    """
    Validate and convert an input into a flat float64 angle array.

    Takes any array-like input (list, tuple, numpy array, etc.) and
    converts it to a 1D numpy array with float64 dtype. When size is given,
    the number of elements must match it exactly.

    :param value: Array-like input holding one angle per beam.
    :param name:  Human-readable parameter name, shown in error messages.
    :param size:  Expected number of elements, or None to accept any length.

    :return: numpy array of shape (N,) with dtype float64.
    :raises ValueError: If the input is empty, not finite, or has the wrong length.
    """
    # Convert the input to a numpy float array and flatten it to 1D
    angles = np.asarray(value, dtype=float).reshape(-1)

    if angles.size == 0:
        raise ValueError(f"{name} must contain at least one angle.")
    if size is not None and angles.size != size:
        raise ValueError(f"{name} must contain {size} angles, got {angles.size}.")
    if not np.all(np.isfinite(angles)):
        raise ValueError(f"{name} must only contain finite angles.")

    return angles


def _as_transform(value, name):
    """
    Validate and convert an input into a 4x4 float homogeneous transform.

    Accepts either a nested 4x4 structure or the flat, row-major list of 16
    values the sensor reports. Only the shape is validated; the rotation
    block is not checked for orthogonality.

    :param value: Array-like input with 16 elements.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (4, 4) with dtype float64.
    :raises ValueError: If the input does not contain exactly 16 elements.
    """
    matrix = np.asarray(value, dtype=float)

    if matrix.size != 16:
        raise ValueError(f"{name} must be a 4x4 transform (16 values).")

    return matrix.reshape(4, 4)


def _deg2rad(angles_deg):
    """
    Convert an angle array from degrees to radians.

    Returns a new array; the input is never modified in place, so a table
    converted once cannot be converted a second time by accident.

    :param angles_deg: Array of angles in degrees.
    :return: New float64 array of angles in radians.
    """
    return np.deg2rad(np.asarray(angles_deg, dtype=float))


def _readonly(array):
    """
    Return a private read-only copy of an array.

    :param array: Any numpy array.
    :return: Copy of the array with the writeable flag cleared.
    """
    frozen = np.array(array, copy=True)
    frozen.setflags(write=False)
    return frozen


def _round_down_to_multiple(value, step):
    """
    Round a non-negative integer down to the nearest multiple of step.

    Example: _round_down_to_multiple(100, 16) == 96

    :param value: Value to round.
    :param step:  Positive step size.

    :return: Largest multiple of step that is <= value.
    :raises ValueError: If step is not positive.
    """
    step = int(step)
    if step <= 0:
        raise ValueError("step must be > 0.")

    # Integer division drops the partial packet, multiplication restores the scale
    return (int(value) // step) * step
