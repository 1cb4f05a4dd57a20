"""
Annotated module lists.

Produces human-readable companions to the machine lists: every module
carries a short reason explaining why it is in (or out of) a set.
"""

from typing import Dict, List, Optional

from .models import Closure, ExcludeResolution, PayloadResolution, sorted_unique
from .modinfo import ModinfoReader
from .names import normalize
from .tree import ModuleTree


class Annotator:
    """Build annotated lists from resolver results."""

    def __init__(self, tree: Optional[ModuleTree] = None, describe: bool = False):
        """
        Initialize an Annotator.

        Args:
            tree: Module tree, needed only when describe is set
            describe: Append each module's .modinfo description
        """
        self.tree = tree
        self.describe = describe and tree is not None
        self._descriptions: Dict[str, str] = {}

    def _line(self, identity: str, note: str) -> str:
        line = f"{identity} # {note}"
        description = self._description(identity)
        if description:
            line += f"  [{description}]"
        return line

    def _description(self, identity: str) -> str:
        if not self.describe:
            return ""
        if identity not in self._descriptions:
            rel = self.tree.find_path(identity)
            self._descriptions[identity] = (
                ModinfoReader.description(self.tree.full_path(rel)) if rel else "")
        return self._descriptions[identity]

    def closure(self, closure: Closure) -> List[str]:
        """Annotate a closure: seeds first, then dependencies with their owner."""
        seeds = closure.seeds.identities
        lines = []
        for identity in closure.modules:
            if identity in seeds:
                lines.append(self._line(identity, f"seed: {closure.label}"))
            else:
                owner = closure.provenance.get(identity)
                note = f"dep-of: {closure.label}"
                if owner:
                    note += f" (required by {owner})"
                lines.append(self._line(identity, note))
        return sorted_unique(lines)

    def excludes(self, excludes: Optional[ExcludeResolution]) -> List[str]:
        if excludes is None:
            return []
        return sorted_unique(self._line(normalize(rel), "explicitly excluded")
                             for rel in excludes.resolved)

    def dropped(self, payload: Optional[PayloadResolution]) -> List[str]:
        if payload is None:
            return []
        return sorted_unique(self._line(identity, "pruned: depends-on excluded")
                             for identity in payload.dropped)

    def artifacts(self, earlyboot: Closure, require: Closure,
                  excludes: Optional[ExcludeResolution],
                  payload: Optional[PayloadResolution]) -> Dict[str, List[str]]:
        """Return annotation file name -> lines; every file is present, even if empty."""
        return {
            f"{earlyboot.label}.closure.annot": self.closure(earlyboot),
            f"{require.label}.closure.annot": self.closure(require),
            'exclude.resolved.annot': self.excludes(excludes),
            'exclude.payload-closure.annot': self.dropped(payload)
        }
