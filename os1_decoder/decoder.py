"""
OS1 Packet Decoder

This module wires the decoding pipeline together into a single-threaded,
event driven decoder: packets are validated with PacketView, buffered by the
FrameAccumulator, and once a sweep is complete turned into a Raster and a
PointCloud that are handed to the publish callback together.

Events are processed strictly in order and each one to completion before the
next is looked at, so a reconfiguration can never interleave with a packet
being ingested: it simply discards the in-progress sweep.

The primary entry points are:
    Decoder.lidar_packet()   Ingest one lidar packet, returning a Sweep when one completes.
    Decoder.reconfigure()    Apply a configuration request.
    Decoder.run()            Consume a stream of typed events, yielding completed sweeps.
"""

import logging
from dataclasses import dataclass

from .Config import DecoderConfig
from .accumulator import FrameAccumulator
from .calibration import load_sensor_info
from .cloud import project_cloud
from .config_policy import normalize_config
from .packet import COLUMNS_PER_PACKET, DecodeError, PacketView
from .raster import build_raster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PacketArrived:
    """A lidar packet was delivered."""
    buf: bytes


@dataclass(frozen=True)
class ImuPacketArrived:
    """An IMU packet was delivered."""
    buf: bytes


@dataclass(frozen=True)
class ConfigChanged:
    """A reconfiguration was requested."""
    config: object


@dataclass(eq=False)
class Sweep:
    """
    Outputs of one completed sweep, emitted together.

    :param raster:         Raster of the sweep.
    :param cloud:          PointCloud projected from the raster.
    :param config:         RuntimeConfig the sweep was assembled under.
    :param frame_name:     Coordinate frame of the outputs.
    :param measurement_id: Measurement id of the first column of the sweep.
    :param frame_id:       Frame id of the first column of the sweep.
    """
    raster: object
    cloud: object
    config: object
    frame_name: str
    measurement_id: int
    frame_id: int


class Decoder:
    """
    Packet to raster and point cloud decoder.

    Built from a DecoderConfig (or any object exposing the same attributes)
    and a calibration snapshot. The snapshot is obtained once here and never
    modified afterwards; reconfiguration only replaces the RuntimeConfig.
    """
    def __init__(self, config=DecoderConfig, sensor_info=None, calibration_provider=None, on_sweep=None):
        """
        :param config:               Class or instance with DecoderConfig-compatible attributes.
        :param sensor_info:          SensorInfo to use as is. When None, calibration is
                                     requested from calibration_provider.
        :param calibration_provider: Zero-argument callable returning sensor metadata,
                                     see load_sensor_info(). Ignored when sensor_info is given.
        :param on_sweep:             Optional callable receiving every completed Sweep.
        """
        # ---------- calibration ----------
        self.sensor_info = sensor_info if sensor_info is not None else load_sensor_info(calibration_provider)

        # ---------- runtime configuration ----------
        self.frame_name = str(getattr(config, "frame_name", DecoderConfig.frame_name))
        self.config = normalize_config(config, COLUMNS_PER_PACKET)
        self.accumulator = FrameAccumulator(self.config.sweep_width, COLUMNS_PER_PACKET)

        # ---------- publish boundary ----------
        self.on_sweep = on_sweep

        # ---------- counters ----------
        self.dropped_packets = 0  # malformed lidar packets rejected
        self.imu_packets = 0      # IMU packets accepted but not decoded
        self.sweeps = 0           # sweeps completed

        logger.info(
            "Decoder initialized: min_range: %f, max_range: %f, sweep_width: %d, organized: %s",
            self.config.min_range,
            self.config.max_range,
            self.config.sweep_width,
            self.config.organized,
        )

    def lidar_packet(self, buf):
        """
        Ingest one lidar packet.

        A buffer that cannot be read as a packet is logged, counted in
        dropped_packets and skipped; it never reaches the accumulator.
        Accepted packets are copied, so the caller may reuse buf for the
        next receive as soon as this returns.

        :param buf: Raw packet buffer.
        :return: The completed Sweep if this packet finished one, else None.
        """
        try:
            packet = PacketView(buf).copy()
        except DecodeError as exc:
            self.dropped_packets += 1
            logger.warning("Dropping malformed lidar packet: %s", exc)
            return None

        self.accumulator.ingest(packet)
        if not self.accumulator.is_ready():
            return None

        logger.debug("Got enough packets %d, ready to publish", len(self.accumulator))
        return self._complete_sweep(self.accumulator.drain())

    def _complete_sweep(self, packets):
        raster = build_raster(packets, self.sensor_info)
        logger.debug("Raster: %d x %d x %d", raster.rows, raster.cols, raster.image.shape[2])
        cloud = project_cloud(raster, organized=self.config.organized)

        first = packets[0]
        sweep = Sweep(
            raster=raster,
            cloud=cloud,
            config=self.config,
            frame_name=self.frame_name,
            measurement_id=first.measurement_id(0),
            frame_id=first.frame_id(0),
        )
        self.sweeps += 1

        if self.on_sweep is not None:
            self.on_sweep(sweep)
        return sweep

    def imu_packet(self, buf):
        """
        Accept an IMU packet.

        IMU packets are not decoded or published; they are only counted.

        :param buf: Raw IMU packet buffer.
        """
        self.imu_packets += 1
        logger.debug("Ignoring IMU packet of %d bytes", len(buf))

    def reconfigure(self, requested):
        """
        Apply a configuration request.

        The request is normalized by normalize_config(), swapped in as a whole,
        and the in-progress sweep is discarded. Calibration is not touched.

        :param requested: Configuration request, see normalize_config().
        :return: The RuntimeConfig now in effect.
        """
        config = normalize_config(requested, COLUMNS_PER_PACKET)
        logger.info(
            "Reconfigure Request: min_range: %f, max_range: %f, sweep_width: %d, organized: %s",
            config.min_range,
            config.max_range,
            config.sweep_width,
            config.organized,
        )
        self.config = config
        self.accumulator.reset(config.sweep_width)
        return config

    def dispatch(self, event):
        """
        Process a single event to completion.

        :param event: PacketArrived, ImuPacketArrived or ConfigChanged.
        :return: Completed Sweep for a lidar packet that finished one, else None.
        :raises TypeError: For an unknown event type.
        """
        if isinstance(event, PacketArrived):
            return self.lidar_packet(event.buf)
        if isinstance(event, ImuPacketArrived):
            self.imu_packet(event.buf)
            return None
        if isinstance(event, ConfigChanged):
            self.reconfigure(event.config)
            return None
        raise TypeError(f"unsupported event type: {type(event).__name__}")

    def run(self, events):
        """
        Consume events in order, yielding each completed sweep.

        Any iterable works; a queue.Queue terminated by None can be consumed
        with run(iter(q.get, None)).

        :param events: Iterable of events.
        :return: Generator of Sweep.
        """
        for event in events:
            sweep = self.dispatch(event)
            if sweep is not None:
                yield sweep
