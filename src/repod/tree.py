from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from repod.exceptions import ScanRootError
from repod.walker import IgnoreAwareWalker

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from repod.config import EngineConfig
    from repod.models import ScanEntry
    from repod.patterns import PatternSet


@dataclass
class TreeNode:
    """A node of the directory map; each node is owned by exactly one parent."""

    name: str
    is_file: bool = False
    children: list[TreeNode] = field(default_factory=list)

    def prune_empty_directories(self) -> bool:
        """Drop directories left without children, bottom-up.

        Returns:
            bool: whether this node survives (files always do)
        """
        if self.is_file:
            return True
        self.children = [c for c in self.children if c.prune_empty_directories()]
        return bool(self.children)

    def sort_children(self) -> None:
        """Directories before files, then by name, recursively."""
        self.children.sort(key=lambda c: (c.is_file, c.name))
        for child in self.children:
            child.sort_children()

    def iter_paths(self, prefix: str = "") -> Iterable[tuple[str, bool]]:
        """Yield `(relative path, is_file)` for every descendant."""
        for child in self.children:
            rel = f"{prefix}{child.name}"
            yield rel, child.is_file
            yield from child.iter_paths(f"{rel}/")

    def render_lines(self) -> list[str]:
        """Render the tree with box-drawing connectors; the root line has none."""
        lines: list[str] = [self.name]

        def walk(node: TreeNode, prefix: str) -> None:
            for idx, child in enumerate(node.children):
                last = idx == len(node.children) - 1
                lines.append(prefix + ("└── " if last else "├── ") + child.name)
                walk(child, prefix + ("    " if last else "│   "))

        walk(self, "")
        return lines

    def render(self) -> str:
        return "\n".join(self.render_lines()) + "\n"


def assemble(root_name: str, entries: Iterable[ScanEntry]) -> TreeNode:
    """Attach entries to their parents through a parent -> children index.

    The index is drained while recursing, so every entry is attached at most
    once and nothing is left behind for reachable parents.
    """
    index: dict[str, list[tuple[str, TreeNode]]] = {}
    for entry in entries:
        node = TreeNode(name=entry.name, is_file=not entry.is_dir)
        index.setdefault(entry.parent_rel, []).append((entry.rel, node))

    root = TreeNode(name=root_name)

    def attach(parent: TreeNode, parent_rel: str) -> None:
        for rel, child in index.pop(parent_rel, []):
            if not child.is_file:
                attach(child, rel)
            parent.children.append(child)

    attach(root, "")
    return root


def build_tree(
    root: Path,
    *,
    patterns: PatternSet,
    config: EngineConfig,
    fresh_clone: bool = False,
) -> TreeNode:
    """Build the pruned, sorted directory map of `root`.

    Files must survive the walker and, when include patterns are set, match
    one of them. Directories are only filtered by pruning.

    Args:
        root (Path): the scan root
        patterns (PatternSet): exclude and include patterns
        config (EngineConfig): engine tables
        fresh_clone (bool, optional): scan only in-repository ignore files. Defaults to False.

    Raises:
        ScanRootError: if `root` is not an existing directory

    Returns:
        TreeNode: the root node
    """
    if not root.is_dir():
        raise ScanRootError(root=root)
    walker = IgnoreAwareWalker(root, patterns=patterns, config=config, fresh_clone=fresh_clone)
    return tree_from_entries(root.name or str(root), walker.walk(), patterns=patterns)


def tree_from_entries(root_name: str, entries: Iterable[ScanEntry], *, patterns: PatternSet) -> TreeNode:
    """Assemble, prune and sort a tree from walker entries.

    Files not matching the include patterns are left out; directories are
    kept and later pruned if the include patterns left them empty.
    """
    kept = (e for e in entries if e.is_dir or patterns.is_included(e.rel, e.name))
    tree = assemble(root_name, kept)
    if patterns.has_include:
        tree.prune_empty_directories()
    tree.sort_children()
    return tree
