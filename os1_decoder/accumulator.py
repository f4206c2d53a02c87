"""
Sweep assembly.

FrameAccumulator buffers lidar packets in arrival order until they cover the
configured sweep width, then hands them over in one piece. Packets are
trusted to arrive in order: nothing is reordered or deduplicated by
measurement id, and a sweep that stops receiving packets is never flushed
on its own.
"""

from .packet import COLUMNS_PER_PACKET


class FrameAccumulator:
    def __init__(self, sweep_width, columns_per_packet=COLUMNS_PER_PACKET):
        """
        :param sweep_width:        Columns per output sweep.
        :param columns_per_packet: Columns carried by each ingested packet.
        """
        self.columns_per_packet = int(columns_per_packet)
        if self.columns_per_packet <= 0:
            raise ValueError("columns_per_packet must be > 0.")
        self.sweep_width = int(sweep_width)
        self.packets = []

    def __len__(self):
        return len(self.packets)

    @property
    def column_count(self):
        """Columns accumulated so far for the in-progress sweep."""
        return len(self.packets) * self.columns_per_packet

    def ingest(self, packet):
        """Append a packet to the in-progress sweep."""
        self.packets.append(packet)

    def is_ready(self):
        """True once the buffered packets cover the sweep width."""
        return self.column_count >= self.sweep_width

    def drain(self):
        """
        Hand over the buffered packets and start a new sweep.

        :return: List of packets in arrival order.
        """
        packets = self.packets
        self.packets = []
        return packets

    def reset(self, sweep_width=None):
        """
        Discard the in-progress sweep, optionally switching to a new width.

        :param sweep_width: New sweep width [columns], or None to keep the current one.
        """
        self.packets = []
        if sweep_width is not None:
            self.sweep_width = int(sweep_width)
