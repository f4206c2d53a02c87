"""
Shared test helpers for the decoder test suite.

Provides plot embedding for the HTML report and a synthetic packet builder
that lays out columns exactly as the sensor does.
"""

import base64
import io

import numpy as np

from os1_decoder.packet import COLUMN_DTYPE, COLUMNS_PER_PACKET, ENCODER_TICKS_PER_REV, VALID_COLUMN


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    The figure is rendered to an in memory byte buffer, Base64 encoded, and
    appended to the ``extras`` list on the current test node. If the
    ``pytest-html`` plugin is not active the function does nothing.

    :param request:  the pytest ``request`` fixture
    :param fig:      a ``matplotlib.figure.Figure`` to embed
    :param name:     a short label shown beside the image in the report
    """
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra


def make_packet(
    ranges=0,
    reflectivity=0,
    encoder_counts=0,
    valid=True,
    measurement_ids=None,
    frame_id=0,
    timestamp=0,
    signal=0,
    noise=0,
):
    """
    Build a synthetic lidar packet.

    Per-beam arguments broadcast the numpy way: a scalar fills every pixel,
    shape (beams,) repeats the same column, shape (columns, beams) sets each
    pixel individually. Per-column arguments accept a scalar or shape (columns,).

    :param ranges:          Raw range word [mm].
    :param reflectivity:    Raw reflectivity.
    :param encoder_counts:  Encoder ticks per column.
    :param valid:           Column validity (bool or per-column sequence).
    :param measurement_ids: Measurement id per column, defaults to 0..15.
    :param frame_id:        Frame id of every column.
    :param timestamp:       Timestamp per column [ns].
    :param signal:          Signal photons.
    :param noise:           Noise photons.
    :return: Packet as bytes.
    """
    columns = np.zeros(COLUMNS_PER_PACKET, dtype=COLUMN_DTYPE)
    columns["timestamp"] = timestamp
    columns["measurement_id"] = np.arange(COLUMNS_PER_PACKET) if measurement_ids is None else measurement_ids
    columns["frame_id"] = frame_id
    columns["encoder_count"] = encoder_counts

    pixels = columns["pixels"]
    pixels["range"] = ranges
    pixels["reflectivity"] = reflectivity
    pixels["signal"] = signal
    pixels["noise"] = noise

    valid = np.broadcast_to(np.asarray(valid, dtype=bool), (COLUMNS_PER_PACKET,))
    columns["status"] = np.where(valid, VALID_COLUMN, 0)
    return columns.tobytes()


def make_sweep_packets(count, ranges=2000, reflectivity=100, valid=True, frame_id=0):
    """
    Build count consecutive packets whose encoder counts advance evenly over one revolution.

    :return: List of packet bytes.
    """
    total_columns = count * COLUMNS_PER_PACKET
    packets = []
    for ibuf in range(count):
        col_index = ibuf * COLUMNS_PER_PACKET + np.arange(COLUMNS_PER_PACKET)
        encoder_counts = (col_index * ENCODER_TICKS_PER_REV) // total_columns
        packets.append(
            make_packet(
                ranges=ranges,
                reflectivity=reflectivity,
                encoder_counts=encoder_counts,
                valid=valid,
                measurement_ids=col_index,
                frame_id=frame_id,
            )
        )
    return packets
