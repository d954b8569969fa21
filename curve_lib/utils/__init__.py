"""Utility functions for curve_lib.

Modules:
    geometry: Vectorized numpy helpers for polylines.
    logconfig: Optional logging setup for applications.
"""

from .geometry import (
    consecutive_vectors,
    direction_chord,
    is_counter_clockwise,
    segment_lengths,
    signed_area,
    unit_steps,
    vector_area,
)
from .logconfig import configure_logging

__all__ = [
    'consecutive_vectors', 'direction_chord', 'is_counter_clockwise',
    'segment_lengths', 'signed_area', 'unit_steps', 'vector_area',
    'configure_logging',
]
