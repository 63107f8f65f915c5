"""Virtual folder hierarchy derived from a flat list of object keys.

The object store has no directories. A folder exists only while at least
one key starts with its path, so everything here is recomputed from a
key listing and nothing is persisted.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Final, final

_PATH_SEPARATOR: Final = '/'


@final
@dataclass
class VirtualFolder:
    """Folder projected from key prefixes.

    ``file_count`` counts immediate children only.
    """

    name: str
    path: str
    file_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'name': self.name,
            'path': self.path,
            'file_count': self.file_count,
        }


@final
@dataclass
class FolderTreeNode:
    """Node of the nested folder tree.

    ``file_count`` counts every key below the node, at any depth.
    """

    name: str
    path: str
    file_count: int = 0
    children: dict[str, 'FolderTreeNode'] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Serialize recursively, children as a list in insertion order."""
        return {
            'name': self.name,
            'path': self.path,
            'file_count': self.file_count,
            'children': [child.as_dict() for child in self.children.values()],
        }


@final
@dataclass(frozen=True)
class FolderProjection:
    """Result of projecting a key listing: folders plus root-level keys."""

    folders: list[VirtualFolder]
    files: list[str]


@final
@dataclass(frozen=True)
class Pagination:
    """Page metadata for an in-memory, order-stable sequence."""

    current_page: int
    per_page: int
    total: int
    last_page: int
    has_more: bool

    @property
    def offset(self) -> int:
        """Index of the first item on the current page."""
        return (self.current_page - 1) * self.per_page

    def page_slice(self, items: Sequence[Any]) -> list[Any]:
        """Cut the current page out of the full sequence.

        Args:
            items: Full ordered sequence the pagination was computed for.

        Returns:
            Items on the current page (empty past the last page).
        """
        return list(items[self.offset:self.offset + self.per_page])

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            'current_page': self.current_page,
            'per_page': self.per_page,
            'total': self.total,
            'last_page': self.last_page,
            'has_more': self.has_more,
        }


def paginate(total: int, page: int, per_page: int) -> Pagination:
    """Compute pagination metadata.

    Args:
        total: Number of items in the full sequence.
        page: Requested page (1-indexed).
        per_page: Items per page.

    Returns:
        Pagination with ``last_page = ceil(total / per_page)``.
    """
    last_page = math.ceil(total / per_page)
    return Pagination(
        current_page=page,
        per_page=per_page,
        total=total,
        last_page=last_page,
        has_more=page < last_page,
    )


def _prefix(parts: Sequence[str], depth: int) -> str:
    return _PATH_SEPARATOR.join(parts[:depth + 1])


def project(keys: Iterable[str]) -> FolderProjection:
    """Derive folders and root-level files from a flat key listing.

    Every ancestor prefix of a key becomes a folder. Only the key's
    immediate parent gets its ``file_count`` incremented.

    Args:
        keys: Object keys, in listing order.

    Returns:
        Folders in first-encountered order and root-level keys.
    """
    folders: dict[str, VirtualFolder] = {}
    files: list[str] = []

    for key in keys:
        parts = key.split(_PATH_SEPARATOR)
        if len(parts) == 1:
            files.append(key)
            continue

        parent_depth = len(parts) - 2
        for depth in range(parent_depth + 1):
            folder_path = _prefix(parts, depth)
            folder = folders.get(folder_path)
            if folder is None:
                folder = VirtualFolder(name=parts[depth], path=folder_path)
                folders[folder_path] = folder
            if depth == parent_depth:
                folder.file_count += 1

    return FolderProjection(folders=list(folders.values()), files=files)


def _count_keys_per_folder(keys: Sequence[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for key in keys:
        parts = key.split(_PATH_SEPARATOR)
        for depth in range(len(parts) - 1):
            folder_path = _prefix(parts, depth)
            counts[folder_path] = counts.get(folder_path, 0) + 1
    return counts


def build_tree(keys: Iterable[str]) -> list[FolderTreeNode]:
    """Build the nested folder tree for a flat key listing.

    First pass counts keys under every folder prefix, second pass threads
    the nodes together. Root-level keys have no folder and are skipped.

    Args:
        keys: Object keys, in listing order.

    Returns:
        Top-level nodes in first-encountered order.
    """
    key_list = list(keys)
    counts = _count_keys_per_folder(key_list)
    tree: dict[str, FolderTreeNode] = {}

    for key in key_list:
        parts = key.split(_PATH_SEPARATOR)
        level = tree
        for depth, folder_name in enumerate(parts[:-1]):
            node = level.get(folder_name)
            if node is None:
                folder_path = _prefix(parts, depth)
                node = FolderTreeNode(
                    name=folder_name,
                    path=folder_path,
                    file_count=counts.get(folder_path, 0),
                )
                level[folder_name] = node
            level = node.children

    return list(tree.values())
