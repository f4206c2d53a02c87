"""
Runtime configuration policy.

Reconfiguration requests are never rejected. normalize_config() clamps and
rounds the requested options into a consistent RuntimeConfig snapshot, which
the decoder then swaps in as a whole:

    min_range   = min(min_range, max_range), both clamped to >= 0
    sweep_width = largest multiple of columns_per_packet <= requested width,
                  and at least one packet wide

Options not listed in RuntimeConfig carry no behaviour; the legacy
full_sweep flag is accepted and only logged.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import SimpleNamespace

from .Config import DecoderConfig
from .math_utils import _round_down_to_multiple
from .packet import COLUMNS_PER_PACKET

logger = logging.getLogger(__name__)

_IGNORED_OPTIONS = ("full_sweep",)


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Normalized runtime options in effect for the current sweep.

    :param min_range:   Minimum range forwarded to consumers [m].
    :param max_range:   Maximum range forwarded to consumers [m].
    :param sweep_width: Columns per output sweep, a multiple of the packet column count.
    :param organized:   Point cloud layout flag.
    """
    min_range: float
    max_range: float
    sweep_width: int
    organized: bool


def normalize_config(requested=DecoderConfig, columns_per_packet=COLUMNS_PER_PACKET):
    """
    Normalize a configuration request into a RuntimeConfig.

    :param requested:          Object exposing min_range, max_range, sweep_width and
                               organized as attributes (a DecoderConfig subclass or
                               instance, a RuntimeConfig), or a mapping of the same
                               keys. Missing options fall back to DecoderConfig.
    :param columns_per_packet: Columns carried by one packet.

    :return: RuntimeConfig.
    """
    if isinstance(requested, Mapping):
        requested = SimpleNamespace(**requested)

    min_range = float(getattr(requested, "min_range", DecoderConfig.min_range))
    max_range = float(getattr(requested, "max_range", DecoderConfig.max_range))
    sweep_width = int(getattr(requested, "sweep_width", DecoderConfig.sweep_width))
    organized = bool(getattr(requested, "organized", DecoderConfig.organized))

    for name in _IGNORED_OPTIONS:
        value = getattr(requested, name, None)
        if value is not None:
            logger.info("Option %s=%s has no effect on decoding and is ignored", name, value)

    if min_range < 0.0 or max_range < 0.0:
        logger.info("Clamping negative range bounds (%f, %f) to 0", min_range, max_range)
        min_range = max(min_range, 0.0)
        max_range = max(max_range, 0.0)

    # min_range should be <= max_range
    min_range = min(min_range, max_range)

    # sweep_width is a whole number of packets, never less than one
    normalized_width = max(_round_down_to_multiple(max(sweep_width, 0), columns_per_packet), int(columns_per_packet))
    if normalized_width != sweep_width:
        logger.info("Sweep width %d adjusted to %d (multiple of %d)", sweep_width, normalized_width, columns_per_packet)

    return RuntimeConfig(
        min_range=min_range,
        max_range=max_range,
        sweep_width=normalized_width,
        organized=organized,
    )
