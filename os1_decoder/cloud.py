"""
Point Cloud Projection

This module projects a range raster into Cartesian points. For a cell of
beam row r with range d, azimuth theta and beam altitude phi:

    x = d * cos(phi) * cos(theta)
    y = Y_AXIS_SIGN * d * cos(phi) * sin(theta)
    z = d * sin(phi)
    intensity = reflectivity

The sensor measures azimuth clockwise seen from above, while the output
frame is right-handed with y to the left, hence Y_AXIS_SIGN = -1.

Two layouts are produced:
    organized    one point per raster cell in row-major order, NaN points
                 for missing returns, width = cols, height = rows.
    unorganized  only cells with a return, width = point count, height = 1.
"""

from dataclasses import dataclass

import numpy as np

Y_AXIS_SIGN = -1.0  # sensor azimuth convention to output frame y axis

POINT_DTYPE = np.dtype([
    ("x", np.float32),
    ("y", np.float32),
    ("z", np.float32),
    ("intensity", np.float32),
])


@dataclass(eq=False)
class PointCloud:
    """
    Point set of one sweep.

    :param points:    Structured array with POINT_DTYPE fields x, y, z, intensity.
    :param width:     Points per row.
    :param height:    Number of rows.
    :param organized: True when the layout mirrors the source raster.
    """
    points: np.ndarray
    width: int
    height: int
    organized: bool

    def __len__(self):
        return int(self.points.shape[0])

    def xyz(self):
        """Return an (N, 3) float32 array of [x, y, z]."""
        return np.column_stack([self.points["x"], self.points["y"], self.points["z"]])

    def xyz_intensity(self):
        """Return an (N, 4) float32 array of [x, y, z, intensity]."""
        return np.column_stack([self.points["x"], self.points["y"], self.points["z"], self.points["intensity"]])

    def as_grid(self):
        """
        Return the organized points reshaped to (height, width).

        :raises ValueError: For an unorganized cloud.
        """
        if not self.organized:
            raise ValueError("only an organized cloud has a grid layout.")
        return self.points.reshape(self.height, self.width)


def project_cloud(raster, organized=True):
    """
    Project a raster into a point cloud.

    The altitude angle is taken from the raster sidecar; its cosine and sine
    are computed once per row and broadcast along the columns. Cells whose
    range is NaN become all-NaN points in organized mode and are dropped in
    unorganized mode.

    :param raster:    Raster produced by build_raster().
    :param organized: Output layout flag.

    :return: PointCloud.
    """
    d = raster.range.astype(float)  # [m]
    theta = raster.azimuth.astype(float)  # [rad]
    phi = np.asarray(raster.altitude_angles, dtype=float)  # [rad], one per row

    # Precompute per-row trigonometry of the beam altitude
    cos_phi = np.cos(phi)[:, np.newaxis]
    sin_phi = np.sin(phi)[:, np.newaxis]

    points = np.empty(raster.rows * raster.cols, dtype=POINT_DTYPE)
    points["x"] = (d * cos_phi * np.cos(theta)).ravel()
    points["y"] = (Y_AXIS_SIGN * d * cos_phi * np.sin(theta)).ravel()
    points["z"] = (d * sin_phi).ravel()
    points["intensity"] = raster.reflectivity.ravel()

    missing = np.isnan(d).ravel()

    if organized:
        # Keep the raster topology, a missing return is NaN in every field
        for field in POINT_DTYPE.names:
            points[field][missing] = np.nan
        return PointCloud(points=points, width=raster.cols, height=raster.rows, organized=True)

    kept = points[~missing]
    return PointCloud(points=kept, width=int(kept.shape[0]), height=1, organized=False)
