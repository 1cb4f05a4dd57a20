"""
Dependency map index.

Holds the forward adjacency (module -> direct dependencies) read from
modules.dep and its inversion (module -> direct dependents). Every key and
value is a canonical identity.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .names import normalize, relative_to_owner


class DependencyIndex:
    """Forward and reverse lookups over one kernel's modules.dep."""

    def __init__(self):
        self.forward: Dict[str, List[str]] = {}
        self.reverse: Dict[str, Set[str]] = {}
        # identity -> dependency paths as listed, resolved against the owner
        self.raw_deps: Dict[str, List[str]] = {}

    def add(self, module: str, deps: Iterable[str]) -> bool:
        """
        Index one modules.dep line.

        Args:
            module: Left-hand side path
            deps: Dependency paths as written on the line

        Returns:
            bool: False if the module was already indexed (first line wins)
        """
        identity = normalize(module)
        if identity in self.forward:
            return False

        raw: List[str] = []
        canonical: List[str] = []
        for dep in deps:
            rel = relative_to_owner(module, dep)
            dep_id = normalize(rel)
            if dep_id in canonical:
                continue
            raw.append(rel)
            canonical.append(dep_id)
            self.reverse.setdefault(dep_id, set()).add(identity)

        self.raw_deps[identity] = raw
        self.forward[identity] = canonical
        return True

    def __contains__(self, ref: str) -> bool:
        return normalize(ref) in self.forward

    def __len__(self) -> int:
        return len(self.forward)

    def dependencies(self, ref: str) -> Optional[List[str]]:
        """Direct dependencies of a module, or None if it has no modules.dep line."""
        return self.forward.get(normalize(ref))

    @property
    def universe(self) -> List[str]:
        """Every module this kernel build produced dependency metadata for."""
        return sorted(self.forward)

    def edges(self) -> Iterator[Tuple[str, str]]:
        """Yield (module, dependency) pairs."""
        for module in sorted(self.forward):
            for dep in self.forward[module]:
                yield module, dep

    def reverse_edges(self, reverse: Optional[Dict[str, Set[str]]] = None) -> List[str]:
        """Return sorted "dependency dependent" lines of a reverse map."""
        reverse = self.reverse if reverse is None else reverse
        return sorted(f"{dep} {user}" for dep, users in reverse.items() for user in users)

    def restrict(self, universe: Iterable[str]) -> Dict[str, Set[str]]:
        """
        Return the reverse map with only edges whose endpoints are both in universe.

        Edges touching builtins or names outside the tree are dropped.
        """
        members = set(universe)
        restricted: Dict[str, Set[str]] = {}
        for dep, users in self.reverse.items():
            if dep not in members:
                continue
            kept = {user for user in users if user in members}
            if kept:
                restricted[dep] = kept
        return restricted

    def __repr__(self) -> str:
        edges = sum(len(deps) for deps in self.forward.values())
        return f"DependencyIndex(modules={len(self.forward)}, edges={edges})"
