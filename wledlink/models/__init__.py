"""Models package"""

from .command import Command, CommandType, CommandStatus, TERMINAL_STATUSES
from .device_state import Color, Segment, DeviceStateSnapshot, parse_segments, MAX_SEGMENT_LEDS

__all__ = [
    'Command', 'CommandType', 'CommandStatus', 'TERMINAL_STATUSES',
    'Color', 'Segment', 'DeviceStateSnapshot', 'parse_segments', 'MAX_SEGMENT_LEDS',
]
