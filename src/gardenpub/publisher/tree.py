"""Navigation tree mirroring the garden's directory layout."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol


class TreeItem(Protocol):
    """Anything placed in the tree: needs its folders, URL and title."""

    @property
    def dirs(self) -> tuple[str, ...]: ...

    @property
    def url(self) -> str: ...

    @property
    def title(self) -> str: ...


@dataclass
class TreeFile:
    url: str
    title: str


@dataclass
class TreeNode:
    """A folder. The root has no name."""

    name: str | None = None
    subfolders: list[TreeNode] = field(default_factory=list)
    files: list[TreeFile] = field(default_factory=list)

    def child(self, name: str) -> TreeNode:
        """Return the subfolder called ``name``, creating it on first use."""
        for folder in self.subfolders:
            if folder.name == name:
                return folder
        folder = TreeNode(name=name)
        self.subfolders.append(folder)
        return folder


def build_tree(items: Iterable[TreeItem]) -> TreeNode:
    """Place each item under its folder path, one leaf per item.

    Folders shared by several items are created once; leaves are never
    de-duplicated.
    """
    root = TreeNode()
    for item in items:
        current = root
        for name in item.dirs:
            current = current.child(name)
        current.files.append(TreeFile(url=item.url, title=item.title))
    return root
