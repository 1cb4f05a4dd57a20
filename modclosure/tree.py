"""
On-disk module tree.

Wraps a ``lib/modules/<KVER>`` directory: locating it, listing its module
files once, and resolving user references to files by path or by name.
"""

import os
import posixpath
from typing import List, Optional, Set

from .errors import MissingInputError, ResolverError
from .filters import ModuleFilter
from .models import MISSING, PRESENT, PRESENT_COMPRESSED, Module
from .names import compressed_variants, is_module_file, normalize


def locate_module_dir(path: str) -> str:
    """
    Return the versioned module directory for path.

    Accepts either ``.../lib/modules/<KVER>`` (recognized by its ``kernel/``
    subdirectory) or ``.../lib/modules`` holding exactly one versioned tree.

    Raises:
        MissingInputError: If path is not a directory
        ResolverError: If no or several versioned trees are found
    """
    if not os.path.isdir(path):
        raise MissingInputError("modules dir", path)
    if os.path.isdir(os.path.join(path, 'kernel')):
        return path

    versions = sorted(
        entry for entry in os.listdir(path)
        if os.path.isdir(os.path.join(path, entry, 'kernel'))
    )
    if not versions:
        raise ResolverError(f"no versioned module trees found under: {path}")
    if len(versions) > 1:
        raise ResolverError(f"multiple KVERs present under {path}: {' '.join(versions)}")
    return os.path.join(path, versions[0])


class ModuleTree:
    """Module files under one kernel's module directory."""

    def __init__(self, root: str):
        if not os.path.isdir(root):
            raise MissingInputError("modules dir", root)
        self.root = root
        self._files: Optional[List[str]] = None

    @property
    def kver(self) -> str:
        return os.path.basename(os.path.normpath(self.root))

    @property
    def files(self) -> List[str]:
        """Relative paths of every module file, in sorted traversal order."""
        if self._files is None:
            files = []
            for dirpath, dirnames, filenames in os.walk(self.root):
                dirnames.sort()
                rel_dir = os.path.relpath(dirpath, self.root)
                for name in sorted(filenames):
                    rel = name if rel_dir == '.' else posixpath.join(
                        rel_dir.replace(os.sep, '/'), name)
                    if is_module_file(rel):
                        files.append(rel)
            self._files = files
        return self._files

    def full_path(self, rel: str) -> str:
        return os.path.join(self.root, *rel.split('/'))

    def exists(self, rel: str) -> bool:
        return os.path.isfile(self.full_path(rel))

    def find_path(self, ref: str) -> Optional[str]:
        """Return the on-disk spelling of an exact relative path, if any."""
        for variant in compressed_variants(normalize(ref)):
            if self.exists(variant):
                return variant
        return None

    def find_by_name(self, ref: str) -> Optional[str]:
        """Return the first module file whose name matches ref's basename."""
        for rel in self.files:
            if ModuleFilter.match_name(rel, ref):
                return rel
        return None

    def locate(self, ref: str) -> Optional[str]:
        """Resolve a reference by exact path first, then by basename."""
        return self.find_path(ref) or self.find_by_name(ref)

    def expand(self, pattern: str) -> List[str]:
        """
        Return every module file matched by pattern.

        A single pattern may match several files when the same name exists
        in more than one subsystem directory.
        """
        return ModuleFilter.filter_modules(self.files, pattern)

    def resolve(self, pattern: str) -> Set[str]:
        """Return the canonical identities of every file matched by pattern."""
        return {normalize(rel) for rel in self.expand(pattern)}

    def lookup(self, ref: str) -> Module:
        """Materialize a Module record for an identity."""
        rel = self.find_path(ref)
        if rel is None:
            return Module(ref, MISSING)
        state = PRESENT if rel == normalize(ref) else PRESENT_COMPRESSED
        return Module(ref, state, rel)

    def __repr__(self) -> str:
        return f"ModuleTree(root='{self.root}')"
