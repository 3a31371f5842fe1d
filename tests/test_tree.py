from __future__ import annotations

import pytest

from pyprovide.exceptions import NodeNotFoundError, TreeStructureError
from pyprovide.tree import NodeTree


def test_ancestors_walk_from_node_to_root() -> None:
    tree = NodeTree()
    root = tree.create_root()
    child = tree.add_child(root, "child")
    grandchild = tree.add_child(child, "grandchild")

    assert list(tree.ancestors(grandchild)) == [grandchild, child, root]
    assert list(tree.ancestors(grandchild, inclusive=False)) == [child, root]
    assert tree.depth(grandchild) == 2
    assert tree.parent(root) is None


def test_remove_destroys_subtree_deepest_first() -> None:
    tree = NodeTree()
    removed_seen: list[int] = []
    tree.add_removal_listener(removed_seen.append)

    root = tree.create_root()
    a = tree.add_child(root, "a")
    a1 = tree.add_child(a, "a1")
    a2 = tree.add_child(a, "a2")
    b = tree.add_child(root, "b")

    removed = tree.remove(a)

    assert removed == (a1, a2, a)
    assert removed_seen == [a1, a2, a]
    assert tree.children(root) == (b,)
    assert a not in tree
    assert len(tree) == 2


def test_removed_ids_are_not_reused() -> None:
    tree = NodeTree()
    root = tree.create_root()
    child = tree.add_child(root)
    tree.remove(child)

    replacement = tree.add_child(root)

    assert replacement != child
    with pytest.raises(NodeNotFoundError):
        tree.parent(child)


def test_move_reparents_and_bumps_revision() -> None:
    tree = NodeTree()
    root = tree.create_root()
    left = tree.add_child(root, "left")
    right = tree.add_child(root, "right")
    leaf = tree.add_child(left, "leaf")
    revision = tree.revision

    tree.move(leaf, right)

    assert tree.parent(leaf) == right
    assert tree.children(left) == ()
    assert tree.children(right) == (leaf,)
    assert tree.revision > revision


def test_move_under_own_subtree_is_rejected() -> None:
    tree = NodeTree()
    root = tree.create_root()
    parent = tree.add_child(root)
    child = tree.add_child(parent)

    with pytest.raises(TreeStructureError):
        tree.move(parent, child)
    with pytest.raises(TreeStructureError):
        tree.move(root, parent)


def test_walk_is_pre_order() -> None:
    tree = NodeTree()
    root = tree.create_root()
    a = tree.add_child(root)
    a1 = tree.add_child(a)
    b = tree.add_child(root)

    assert list(tree.walk(root)) == [root, a, a1, b]
    assert tree.is_ancestor(root, a1)
    assert not tree.is_ancestor(b, a1)


def test_remove_handles_very_deep_chains() -> None:
    tree = NodeTree()
    root = tree.create_root()
    top = tree.add_child(root, "top")
    node = top
    for _ in range(3000):
        node = tree.add_child(node)

    removed = tree.remove(top)

    assert len(removed) == 3001
    assert removed[0] == node
    assert removed[-1] == top
    assert len(tree) == 1


def test_move_listeners_see_the_moved_subtree_root() -> None:
    tree = NodeTree()
    moved: list[int] = []
    tree.add_move_listener(moved.append)
    root = tree.create_root()
    a = tree.add_child(root, "a")
    b = tree.add_child(root, "b")
    leaf = tree.add_child(a, "leaf")

    tree.move(leaf, b)
    tree.move(leaf, b)

    assert moved == [leaf]
    assert tree.parent(leaf) == b
