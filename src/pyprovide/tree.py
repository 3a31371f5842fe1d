"""Abstract node hierarchy.

Nodes live in an arena and are addressed by index. Parent links are
stored as indices rather than object references, so there are no
parent/child reference cycles and a stale id for a destroyed node can
always be detected (ids are never reused).

The tree knows nothing about bindings or subscriptions. Components that
own per-node resources register a removal listener and release them when
a node is destroyed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import NewType

from pyprovide.exceptions import NodeNotFoundError, TreeStructureError

_logger = logging.getLogger(__name__)

NodeId = NewType("NodeId", int)

RemovalListener = Callable[[NodeId], None]
MoveListener = Callable[[NodeId], None]


@dataclass(slots=True)
class _NodeRecord:
    parent: NodeId | None
    label: str
    children: list[NodeId] = field(default_factory=list)


class NodeTree:
    """Arena of nodes with single-parent ancestry.

    ``revision`` increases on every structural change (add, remove, move)
    so resolvers can drop anything they derived from the old shape.
    """

    def __init__(self) -> None:
        self._nodes: list[_NodeRecord | None] = []
        self._removal_listeners: list[RemovalListener] = []
        self._move_listeners: list[MoveListener] = []
        self._revision = 0
        self._lock = threading.RLock()

    @property
    def revision(self) -> int:
        return self._revision

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for record in self._nodes if record is not None)

    def __contains__(self, node: object) -> bool:
        return isinstance(node, int) and self.contains(NodeId(node))

    def contains(self, node: NodeId) -> bool:
        """Whether *node* exists and has not been removed."""
        with self._lock:
            return 0 <= node < len(self._nodes) and self._nodes[node] is not None

    def add_removal_listener(self, listener: RemovalListener) -> None:
        """Call *listener* with every node id destroyed by ``remove``."""
        self._removal_listeners.append(listener)

    def add_move_listener(self, listener: MoveListener) -> None:
        """Call *listener* with the root of every subtree re-parented by ``move``."""
        self._move_listeners.append(listener)

    def _record(self, node: NodeId) -> _NodeRecord:
        if not 0 <= node < len(self._nodes):
            raise NodeNotFoundError(node)
        record = self._nodes[node]
        if record is None:
            raise NodeNotFoundError(node)
        return record

    def _new(self, parent: NodeId | None, label: str) -> NodeId:
        node = NodeId(len(self._nodes))
        self._nodes.append(_NodeRecord(parent=parent, label=label))
        self._revision += 1
        return node

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def create_root(self, label: str = "root") -> NodeId:
        """Create a parentless node."""
        with self._lock:
            node = self._new(None, label)
        _logger.debug("Created root node=%d label=%s", node, label)
        return node

    def add_child(self, parent: NodeId, label: str = "") -> NodeId:
        """Create a node under *parent*."""
        with self._lock:
            parent_record = self._record(parent)
            node = self._new(parent, label)
            parent_record.children.append(node)
        _logger.debug("Created node=%d parent=%d label=%s", node, parent, label)
        return node

    def remove(self, node: NodeId) -> tuple[NodeId, ...]:
        """Destroy *node* and its subtree, deepest nodes first.

        Removal listeners run after the structure has changed, once per
        removed node, in the returned order.
        """
        with self._lock:
            record = self._record(node)
            removed = tuple(self._post_order(node))
            if record.parent is not None:
                self._record(record.parent).children.remove(node)
            for dead in removed:
                self._nodes[dead] = None
            self._revision += 1

        _logger.debug("Removed node=%d subtree_size=%d", node, len(removed))
        for dead in removed:
            for listener in self._removal_listeners:
                listener(dead)
        return removed

    def move(self, node: NodeId, new_parent: NodeId) -> None:
        """Re-parent *node* (and its subtree) under *new_parent*.

        Move listeners run after the structure has changed. Moving a node
        under its current parent is a no-op and notifies nobody.
        """
        with self._lock:
            record = self._record(node)
            self._record(new_parent)
            if record.parent is None:
                raise TreeStructureError(f"root node {node} cannot be moved")
            if self.is_ancestor(node, new_parent):
                raise TreeStructureError(f"cannot move node {node} under its own subtree (node {new_parent})")
            if record.parent == new_parent:
                return
            self._record(record.parent).children.remove(node)
            self._record(new_parent).children.append(node)
            record.parent = new_parent
            self._revision += 1
        _logger.debug("Moved node=%d new_parent=%d", node, new_parent)
        for listener in self._move_listeners:
            listener(node)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def parent(self, node: NodeId) -> NodeId | None:
        with self._lock:
            return self._record(node).parent

    def children(self, node: NodeId) -> tuple[NodeId, ...]:
        with self._lock:
            return tuple(self._record(node).children)

    def label(self, node: NodeId) -> str:
        with self._lock:
            return self._record(node).label

    def ancestors(self, node: NodeId, *, inclusive: bool = True) -> Iterator[NodeId]:
        """Yield *node*'s ancestors from nearest to the root.

        The chain is captured up front, so callers may mutate the tree
        while iterating without seeing a half-moved ancestry.
        """
        with self._lock:
            chain: list[NodeId] = []
            current: NodeId | None = node if inclusive else self._record(node).parent
            while current is not None:
                chain.append(current)
                current = self._record(current).parent
        yield from chain

    def is_ancestor(self, ancestor: NodeId, node: NodeId) -> bool:
        """Whether *ancestor* is *node* or one of its ancestors."""
        return any(candidate == ancestor for candidate in self.ancestors(node))

    def depth(self, node: NodeId) -> int:
        """Number of ancestors above *node* (a root has depth 0)."""
        return sum(1 for _ in self.ancestors(node, inclusive=False))

    def walk(self, node: NodeId) -> Iterator[NodeId]:
        """Yield *node* and its descendants in pre-order."""
        with self._lock:
            self._record(node)
            order: list[NodeId] = []
            stack = [node]
            while stack:
                current = stack.pop()
                order.append(current)
                stack.extend(reversed(self._record(current).children))
        yield from order

    def _post_order(self, node: NodeId) -> list[NodeId]:
        # Reversed pre-order with children pushed left to right is post-order.
        order: list[NodeId] = []
        stack = [node]
        while stack:
            current = stack.pop()
            order.append(current)
            stack.extend(self._record(current).children)
        order.reverse()
        return order
