"""Trace hierarchy nodes and the chains assembled from them."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .path import Calibration, Path

_node_ids = itertools.count(1)

# Longest short title accepted by distance-matrix consumers
SHORT_TITLE_LENGTH = 10


@dataclass(eq=False)
class TraceNode:
    """One node of an external trace hierarchy.

    A node that wraps a path is a branch: its own segment comes first and
    its children continue from it. Nodes compare and hash by identity.

    Attributes:
        title: Display title; matched by exclusion patterns.
        path: Raw segment wrapped by this node, if any.
        children: Child nodes in order.
        node_type: Kind of node; a title equal to it means "unnamed".
        node_id: Unique id, assigned automatically when not given.
        color: Display color, passed through to exporters.
        calibration: Calibration of the wrapped segment's coordinates.
        parent: Set by add_child.
    """
    title: str
    path: Optional[Path] = None
    children: List[TraceNode] = field(default_factory=list)
    node_type: str = 'node'
    node_id: int = field(default_factory=lambda: next(_node_ids))
    color: Optional[Tuple[int, int, int]] = None
    calibration: Optional[Calibration] = None
    parent: Optional[TraceNode] = field(default=None, repr=False)

    def __post_init__(self):
        for child in self.children:
            child.parent = self

    def add_child(self, child: TraceNode) -> TraceNode:
        child.parent = self
        self.children.append(child)
        return child

    @property
    def is_named(self) -> bool:
        return bool(self.title) and self.title != self.node_type


@dataclass
class TraceSource:
    """A trace hierarchy handed over by an external collaborator.

    Attributes:
        title: Name of the source (project), used in chain titles.
        root: Root node of the hierarchy.
        calibration: Default calibration for segments without their own.
    """
    title: str
    root: TraceNode
    calibration: Optional[Calibration] = None


class Chain:
    """Segments concatenated root-to-leaf through a trace hierarchy.

    Attributes:
        segments: Nodes whose paths make up the chain, in order.
        path: All segment paths joined end to end.
        source_title: Title of the trace source the chain came from.
        title: Explicit title overriding the derived ones.
    """

    def __init__(self, root: TraceNode, source_title: str = ''):
        self.segments: List[TraceNode] = [root]
        self.path: Path = root.path
        self.source_title = source_title
        self.title: Optional[str] = None

    def append(self, node: TraceNode) -> None:
        self.segments.append(node)
        self.path = self.path.chain(node.path)

    def duplicate(self) -> Chain:
        copy = Chain.__new__(Chain)
        copy.segments = list(self.segments)
        copy.path = self.path
        copy.source_title = self.source_title
        copy.title = self.title
        return copy

    def __len__(self) -> int:
        return len(self.segments)

    def __repr__(self) -> str:
        ids = ' '.join(f"#{node.node_id}" for node in self.segments)
        return f"Chain(len: {len(self.segments)}  {ids})"

    @property
    def root(self) -> TraceNode:
        return self.segments[0]

    @property
    def root_id(self) -> int:
        return self.root.node_id

    @property
    def color(self):
        return self.root.color

    @property
    def long_title(self) -> str:
        """Source title followed by the ids of all segments."""
        if self.title is not None:
            return self.title
        ids = ' '.join(f"#{node.node_id}" for node in self.segments)
        return f"{self.source_title}  {ids}".strip()

    @property
    def cell_title(self) -> str:
        """Title of the root segment, then the ids of the further segments."""
        if self.title is not None:
            return self.title
        parts = [self.root.title] + [f"#{node.node_id}" for node in self.segments[1:]]
        return ' '.join(parts)

    @property
    def short_title(self) -> str:
        """At most SHORT_TITLE_LENGTH characters identifying the chain.

        The root branch's own title if it was named, else its parent's,
        else the root id.
        """
        if self.title is not None:
            return self.title[-SHORT_TITLE_LENGTH:]
        short = None
        node = self.root
        for candidate in (node, node.parent):
            if candidate is not None and candidate.is_named:
                short = candidate.title
                break
        if short is not None and len(short) > SHORT_TITLE_LENGTH:
            short = None
        if short is None:
            short = str(node.node_id)
            if len(short) <= SHORT_TITLE_LENGTH - 2:
                short = 'id' + short
        return short[-SHORT_TITLE_LENGTH:]
