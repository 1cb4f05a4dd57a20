"""
Seed list resolution.

Maps user module references onto files in the module tree, setting aside
compiled-in modules and recording references that match nothing.
"""

import sys
from typing import Iterable, Mapping, Optional

from .models import SeedResolution
from .names import module_name
from .tree import ModuleTree


class SeedResolver:
    """Resolve seed entries to relative paths under a module tree."""

    def __init__(self, tree: ModuleTree, builtins: Optional[Mapping[str, str]] = None,
                 verbose: bool = False):
        """
        Initialize a SeedResolver.

        Args:
            tree: Module tree to search
            builtins: Module name -> modules.builtin path
            verbose: Report every resolved entry on stderr
        """
        self.tree = tree
        self.builtins = dict(builtins or {})
        self.verbose = verbose

    def resolve(self, entries: Iterable[str]) -> SeedResolution:
        """
        Resolve seed entries.

        Each entry is checked against the builtin list, then looked up by
        exact relative path (any compressed variant), then by file name
        anywhere in the tree. Entries matching nothing are recorded as
        missing; that is never fatal.

        Args:
            entries: Seed references (blank and comment lines already removed)

        Returns:
            SeedResolution: Sorted resolved, missing and builtin lists
        """
        resolved, missing, builtins = [], [], []

        for entry in entries:
            name = module_name(entry)
            if name in self.builtins:
                print(f"Warning: skipping builtin: {name}", file=sys.stderr)
                builtins.append(self.builtins[name])
                continue

            rel = self.tree.locate(entry)
            if rel is None:
                print(f"Warning: seed not found: {entry}", file=sys.stderr)
                missing.append(entry)
                continue

            if self.verbose:
                print(f"[modclosure] seed: {entry} -> {rel}", file=sys.stderr)
            resolved.append(rel)

        return SeedResolution(resolved, missing, builtins)
