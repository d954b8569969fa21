"""Domain objects for curve comparison.

This module provides the value types the algorithms operate on.

Classes:
    Path: Ordered 2-D/3-D point sequence with derived vectors.
    Calibration: Physical scale factors of raw coordinates.
    Provenance: Source points behind each point of a path.
    EditKind: DELETE, INSERT or MUTATE.
    EditOp: One step of an alignment.
    AlignmentScript: Full alignment of one path onto another.
    TraceNode: Node of an external trace hierarchy.
    TraceSource: A trace hierarchy with its title and calibration.
    Chain: Root-to-leaf concatenation of trace segments.

Example usage::

    from curve_lib.domain import Path, TraceNode

    trunk = TraceNode('trunk', path=Path([(0, 0), (0, 10)]))
    trunk.add_child(TraceNode('left', path=Path([(0, 10), (-5, 15)])))
"""

from .chain import Chain, TraceNode, TraceSource
from .path import Calibration, Path, Provenance
from .script import AlignmentScript, EditKind, EditOp

__all__ = [
    # Geometry
    'Path', 'Calibration', 'Provenance',
    # Alignment
    'EditKind', 'EditOp', 'AlignmentScript',
    # Hierarchy
    'TraceNode', 'TraceSource', 'Chain',
]
