"""Chain construction from branching trace hierarchies.

A traced arbor is stored as a tree: each branch node wraps one path segment
and holds the branches that continue from it. Comparing arbors means
comparing every root-to-leaf route through them, so the builder emits one
Chain per route, each concatenating the segments along it.

Walking a node, its own segment starts (or extends) the current chain. The
children of that node whose subtrees hold any segment continue the chain:
the first one extends it in place and every further one gets a copy of the
chain as it stood after the shared segment. A bare segment (a leaf inside a
group without a segment of its own) leads the same way into the group's
other members that have segments below them. A child whose subtree holds no
segment at all cuts the chain.

The walk uses an explicit stack of frames instead of recursion, so deep
hierarchies do not hit the interpreter's recursion limit and cancellation
can be checked once per frame.

Example usage::

    from curve_lib.analysis.chains import ChainBuilder

    builder = ChainBuilder(exclude_pattern=r'.*(soma|glia).*')
    chains = builder.build_chains(source.root, title=source.title)
    for chain in chains:
        print(chain.short_title, len(chain.path))
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import List, Optional, Pattern, Set, Union

from ..domain.chain import Chain, TraceNode
from ..errors import InvalidInputError, OperationCancelledError

logger = logging.getLogger(__name__)


@dataclass
class _Segment:
    """Work item for the segment a branch node wraps."""
    node: TraceNode


@dataclass
class _VisitFrame:
    """Iterating over the items of ``node`` with the current chain."""
    node: TraceNode
    chain: Optional[Chain]
    items: list
    index: int = 0


@dataclass
class _ForkFrame:
    """Iterating over the items of ``owner`` that continue a freshly extended chain.

    ``strict`` forks only into items with path-bearing descendants; it is
    set when a bare segment leads into its own siblings.
    """
    owner: TraceNode
    items: list
    chain: Chain
    base: Chain
    strict: bool = False
    first: bool = True
    index: int = 0


def _items(node: TraceNode) -> list:
    """Work items of a node: its own segment first, then its children."""
    items: list = [_Segment(node)] if node.path is not None else []
    items.extend(node.children)
    return items


def _key(item) -> tuple:
    if isinstance(item, _Segment):
        return ('segment', id(item.node))
    return ('node', id(item))


def _owner(frame) -> TraceNode:
    return frame.node if isinstance(frame, _VisitFrame) else frame.owner


def path_bearing_nodes(root: TraceNode) -> Set[int]:
    """Ids of the nodes below ``root`` (inclusive) whose subtree holds a path."""
    order: list = []
    stack = [root]
    seen: set = set()
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        order.append(node)
        stack.extend(node.children)
    bearing: Set[int] = set()
    for node in reversed(order):
        if node.path is not None or any(id(c) in bearing for c in node.children):
            bearing.add(id(node))
    return bearing


def has_path_descendants(node: TraceNode, bearing: Optional[Set[int]] = None) -> bool:
    """Whether any node strictly below ``node`` wraps a path."""
    if bearing is None:
        bearing = path_bearing_nodes(node)
    return any(id(child) in bearing for child in node.children)


class ChainBuilder:
    """Builds all root-to-leaf chains of a trace hierarchy.

    Attributes:
        exclude: Compiled pattern; nodes whose whole title matches it are
            skipped together with their subtree.
    """

    def __init__(self, exclude_pattern: Union[str, Pattern[str], None] = None):
        if isinstance(exclude_pattern, str):
            try:
                exclude_pattern = (re.compile(exclude_pattern, re.IGNORECASE | re.DOTALL)
                                   if exclude_pattern else None)
            except re.error as e:
                raise InvalidInputError(f"Bad exclude pattern: {e}") from e
        self.exclude = exclude_pattern

    def is_excluded(self, node: TraceNode) -> bool:
        return self.exclude is not None and self.exclude.fullmatch(node.title or '') is not None

    def build_chains(self, root: TraceNode, title: Optional[str] = None,
                     is_cancelled: Optional[Callable[[], bool]] = None) -> List[Chain]:
        """Emit every root-to-leaf chain below ``root``.

        Args:
            root: Root of the hierarchy; never modified.
            title: Source title used in chain titles; defaults to root.title.
            is_cancelled: Polled once per frame.

        Returns:
            Chains in depth-first order.

        Raises:
            OperationCancelledError: If ``is_cancelled`` returned True.
            InvalidInputError: If segments cannot be chained (closed paths).
        """
        walk = _Walk(self, root.title if title is None else title, path_bearing_nodes(root))
        if self.is_excluded(root):
            logger.info("Excluding node %s (#%s) and all its children", root.title, root.node_id)
            return walk.chains

        walk.stack.append(_VisitFrame(root, None, _items(root)))
        while walk.stack:
            if is_cancelled is not None and is_cancelled():
                raise OperationCancelledError("Chain building cancelled")
            frame = walk.stack[-1]
            if frame.index >= len(frame.items):
                walk.stack.pop()
                continue
            item = frame.items[frame.index]
            frame.index += 1
            if isinstance(frame, _VisitFrame):
                walk.visit(frame, item)
            else:
                walk.fork(frame, item)

        logger.info("Built %d chains from %s", len(walk.chains), walk.source_title)
        return walk.chains


class _Walk:
    """State of one build_chains traversal."""

    def __init__(self, builder: ChainBuilder, source_title: str, bearing: Set[int]):
        self.builder = builder
        self.source_title = source_title
        self.bearing = bearing
        self.visited: set = set()
        self.chains: List[Chain] = []
        self.stack: list = []

    def visit(self, frame: _VisitFrame, item) -> None:
        key = _key(item)
        if key in self.visited:
            return
        if isinstance(item, _Segment):
            self.visited.add(key)
            node = item.node
            if len(node.path) < 2:
                return
            if frame.chain is None:
                frame.chain = Chain(node, self.source_title)
                self.chains.append(frame.chain)
            else:
                frame.chain.append(node)
            fork = _ForkFrame(frame.node, frame.items, frame.chain, frame.chain.duplicate())
            if not node.children and len(self.stack) > 1:
                parent = self.stack[-2]
                if _owner(parent).path is None:
                    # a bare segment in a group leads into the group's other branches
                    fork = _ForkFrame(_owner(parent), parent.items, frame.chain,
                                      frame.chain.duplicate(), strict=True)
            self.stack.append(fork)
            return

        if self.builder.is_excluded(item):
            logger.debug("Excluding child %s (#%s)", item.title, item.node_id)
            return
        self.visited.add(key)
        if id(item) not in self.bearing:
            frame.chain = None
        self.stack.append(_VisitFrame(item, frame.chain, _items(item)))

    def fork(self, frame: _ForkFrame, item) -> None:
        if isinstance(item, _Segment) or _key(item) in self.visited:
            return
        if self.builder.is_excluded(item):
            return
        if frame.strict:
            continues = has_path_descendants(item, self.bearing)
        else:
            continues = id(item) in self.bearing
        if not continues:
            return
        self.visited.add(_key(item))
        if frame.first:
            chain = frame.chain
            frame.first = False
        else:
            chain = frame.base.duplicate()
            self.chains.append(chain)
        self.stack.append(_VisitFrame(item, chain, _items(item)))


def build_chains(root: TraceNode, path_filter: Union[str, Pattern[str], None] = None,
                 title: Optional[str] = None) -> List[Chain]:
    """Emit every root-to-leaf chain below ``root``.

    Args:
        root: Root node of the trace hierarchy.
        path_filter: Exclusion regex over node titles (full match, case-insensitive).
        title: Source title used in chain titles.
    """
    return ChainBuilder(path_filter).build_chains(root, title)
