"""Utilities package"""

from .logger import setup_logging
from .payload import normalize_payload, rgb_to_rgbw, build_state_payload

__all__ = ['setup_logging', 'normalize_payload', 'rgb_to_rgbw', 'build_state_payload']
