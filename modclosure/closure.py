"""
Forward dependency closures.

Breadth-first walk of modules.dep from a resolved seed list, recording why
each dependency was pulled in and which required modules are nowhere to be
found.
"""

import sys
from collections import deque
from typing import Optional, Set

from .index import DependencyIndex
from .models import BUILTIN, MISSING, PRESENT, Closure, Module, SeedResolution
from .names import normalize
from .tree import ModuleTree


class ClosureEngine:
    """Compute seed closures over a DependencyIndex."""

    def __init__(self, index: DependencyIndex, tree: Optional[ModuleTree] = None,
                 verbose: bool = False):
        """
        Initialize a ClosureEngine.

        Args:
            index: Parsed modules.dep
            tree: Module tree used to tell absent modules from leaf modules
            verbose: Report closure sizes on stderr
        """
        self.index = index
        self.tree = tree
        self.verbose = verbose

    def compute(self, seeds: SeedResolution, label: str) -> Closure:
        """
        Compute the closure of a resolved seed list.

        Args:
            seeds: Output of SeedResolver.resolve
            label: Run label used for artifact names

        Returns:
            Closure: closure, modules, added_deps and missing lists, plus a
                Module record (with its on-disk state) per member and builtin seed
        """
        seen: Set[str] = set()
        closure, added, missing = [], [], []
        members = [Module(path, BUILTIN) for path in seeds.builtins]
        provenance = {}
        queue = deque((rel, None) for rel in seeds.resolved)

        while queue:
            current, owner = queue.popleft()
            identity = normalize(current)
            if identity in seen:
                continue
            seen.add(identity)
            closure.append(current)
            module = self._materialize(current)
            members.append(module)
            if owner is not None:
                provenance.setdefault(identity, owner)

            if identity in self.index:
                for dep in self.index.raw_deps[identity]:
                    queue.append((dep, identity))
                    added.append(f"{dep} <- required by {current}")
            elif module.state == MISSING:
                missing.append(f"{current} <- required by {owner or current}")

        result = Closure(label, seeds, closure, added, missing, provenance, members)
        if self.verbose:
            print(f"[modclosure] {label}: closure entries: {len(result.closure)}",
                  file=sys.stderr)
        return result

    def _materialize(self, rel: str) -> Module:
        if self.tree is not None:
            return self.tree.lookup(rel)
        # without a tree only modules.dep tells present from missing
        if rel in self.index:
            return Module(rel, PRESENT, rel)
        return Module(rel, MISSING)
