class DecoderConfig:
    # Range envelope forwarded to consumers with every sweep
    min_range = 0.5  # [m]
    max_range = 120.0  # [m]

    # Sweep assembly
    sweep_width = 1024  # [columns], rounded down to a multiple of the packet column count

    # Point cloud layout: True keeps one point per raster cell (NaN for no return),
    # False keeps only valid returns in a single row
    organized = True

    # Coordinate frame name attached to published sweeps
    frame_name = "os1_lidar"
