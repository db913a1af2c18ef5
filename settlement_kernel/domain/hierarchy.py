"""
Materialized-path helpers for the organization tree.

A path is the ordered list of node ids from the root down to the node
itself, stored as JSON.  Paths are compared element-wise, never as text,
so no id can be mistaken for a prefix of another.
"""

from collections.abc import Sequence
from uuid import UUID

# Entity path of the leg that absorbs the residual when no distributor exists
MASTER_PATH: tuple[str, ...] = ("master",)

PathLike = Sequence[str] | Sequence[UUID]


def normalize_path(path: PathLike | None) -> list[str]:
    if not path:
        return []
    return [str(node) for node in path]


def child_path(parent_path: PathLike | None, node_id: UUID | str) -> list[str]:
    """Path of a new node placed under ``parent_path`` (root when empty)."""
    return normalize_path(parent_path) + [str(node_id)]


def is_descendant(path: PathLike | None, ancestor_path: PathLike | None) -> bool:
    """
    True when ``path`` equals ``ancestor_path`` or lies beneath it.

    An empty ancestor path is the master viewer and contains everything.
    O(depth).
    """
    ancestor = normalize_path(ancestor_path)
    candidate = normalize_path(path)
    if len(candidate) < len(ancestor):
        return False
    return candidate[: len(ancestor)] == ancestor


def is_strict_descendant(path: PathLike | None, ancestor_path: PathLike | None) -> bool:
    return len(normalize_path(path)) > len(normalize_path(ancestor_path)) and is_descendant(
        path, ancestor_path
    )


def rebase_path(path: PathLike, old_prefix: PathLike, new_prefix: PathLike) -> list[str]:
    """
    Replace ``old_prefix`` at the head of ``path`` with ``new_prefix``.

    Raises:
        ValueError: ``path`` does not start with ``old_prefix``.
    """
    if not is_descendant(path, old_prefix):
        raise ValueError(f"path {list(path)} does not start with {list(old_prefix)}")
    tail = normalize_path(path)[len(normalize_path(old_prefix)):]
    return normalize_path(new_prefix) + tail


def path_ids(path: PathLike | None) -> list[UUID]:
    """Node ids of a path; the master sentinel has none."""
    return [UUID(node) for node in normalize_path(path) if node not in MASTER_PATH]
