"""
Pattern matching for module references.

Seed and exclude entries are matched against the module tree either by
relative path or by file name, with shell-style wildcards, and always
accepting any compressed variant of the file.
"""

import fnmatch
import posixpath
from typing import Iterable, List

from .names import compressed_variants, normalize


class ModuleFilter:
    """Match module files against user supplied patterns."""

    @staticmethod
    def match_path(rel: str, pattern: str) -> bool:
        """
        Match a relative path against a path pattern.

        Args:
            rel: On-disk path relative to the module tree
            pattern: Path or path glob; normalized to a .ko suffix first

        Returns:
            bool: True if rel is the pattern or one of its compressed variants
        """
        return any(fnmatch.fnmatchcase(rel, variant)
                   for variant in compressed_variants(normalize(pattern)))

    @staticmethod
    def match_name(rel: str, pattern: str) -> bool:
        """Match the file name of rel against the basename of pattern."""
        base = posixpath.basename(normalize(pattern))
        name = posixpath.basename(rel)
        return any(fnmatch.fnmatchcase(name, variant)
                   for variant in compressed_variants(base))

    @staticmethod
    def filter_modules(files: Iterable[str], pattern: str) -> List[str]:
        """
        Filter module files by pattern.

        Args:
            files: Relative module paths
            pattern: User pattern (bare name, path, glob, any suffix)

        Returns:
            List[str]: Matching files in input order
        """
        filtered = []
        for rel in files:
            if ModuleFilter.match_path(rel, pattern) or ModuleFilter.match_name(rel, pattern):
                filtered.append(rel)
        return filtered
