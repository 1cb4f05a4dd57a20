"""
Exclude expansion and linting.

An exclude request is accepted only as a whole: if removing the requested
modules, together with everything that depends on them, would touch any
protected set, the entire request is rejected.
"""

import sys
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .errors import ExcludeConflictError
from .graph import attribute, reverse_closure
from .models import ExcludeResolution, ProtectedSet
from .names import normalize
from .tree import ModuleTree


class ExcludeLinter:
    """Expand exclude patterns and check them against protected sets."""

    def __init__(self, tree: ModuleTree, reverse: Mapping[str, Iterable[str]],
                 verbose: bool = False):
        """
        Initialize an ExcludeLinter.

        Args:
            tree: Module tree the patterns are expanded against
            reverse: Full reverse dependency map (identity -> dependents)
            verbose: Report expansion progress on stderr
        """
        self.tree = tree
        self.reverse = reverse
        self.verbose = verbose

    def expand(self, patterns: Iterable[str]) -> Dict[str, List[str]]:
        """Return pattern -> on-disk files it matches (possibly none)."""
        return {pattern: self.tree.expand(pattern) for pattern in patterns}

    def lint(self, patterns: Sequence[str],
             protected: Optional[Iterable[ProtectedSet]] = None) -> ExcludeResolution:
        """
        Expand exclude patterns and verify no protected module is lost.

        Args:
            patterns: Exclude request entries (basenames, paths, globs)
            protected: Sets the exclusion must leave intact

        Returns:
            ExcludeResolution: Accepted excludes and ignored patterns

        Raises:
            ExcludeConflictError: If the reverse-dependency closure of the
                resolved excludes meets any protected set
        """
        expansion = self.expand(patterns)
        resolved: Set[str] = set()
        ignored: List[str] = []
        for pattern, matches in expansion.items():
            if not matches:
                ignored.append(pattern)
                print(f"Warning: exclude matched nothing: {pattern}", file=sys.stderr)
                continue
            if self.verbose:
                print(f"[modclosure] exclude: {pattern} -> {' '.join(matches)}",
                      file=sys.stderr)
            resolved.update(matches)

        identities = {normalize(rel) for rel in resolved}
        closure = reverse_closure(identities, self.reverse)
        if self.verbose and closure:
            print(f"[modclosure] exclude reverse-dependency closure: {len(closure)} modules",
                  file=sys.stderr)

        conflicts = self.conflicts(identities, closure, protected or ())
        if conflicts:
            raise ExcludeConflictError(conflicts)

        return ExcludeResolution(patterns, resolved, ignored, closure)

    def conflicts(self, identities: Set[str], closure: Set[str],
                  protected: Iterable[ProtectedSet]):
        """Return (module, label, excluded causes) for every protected module hit."""
        causes = None
        found = []
        for pset in protected:
            hit = sorted(closure & pset.members)
            if not hit:
                continue
            if causes is None:
                causes = attribute(identities, self.reverse)
            for module in hit:
                found.append((module, pset.label, sorted(causes.get(module, ()))))
        return found
