"""Streaming package"""

from .codec import build_header, parse_header, encode_frame, pack_pixels, MAGIC, HEADER_SIZE
from .generator import PaletteFlowGenerator

__all__ = ['build_header', 'parse_header', 'encode_frame', 'pack_pixels', 'MAGIC', 'HEADER_SIZE', 'PaletteFlowGenerator']
