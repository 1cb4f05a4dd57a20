"""
Data models for the module resolver.

This module contains the records produced by each resolver stage. They are
plain containers: every list they hold is already sorted and de-duplicated.
"""

from typing import Dict, Iterable, List, Optional, Set

from .names import normalize

# On-disk existence states of a module
PRESENT = "present"
PRESENT_COMPRESSED = "present-compressed"
BUILTIN = "builtin"
MISSING = "missing"

MODULE_STATES = (PRESENT, PRESENT_COMPRESSED, BUILTIN, MISSING)


def sorted_unique(items: Iterable[str]) -> List[str]:
    """Return items de-duplicated and sorted by code point (LC_ALL=C order)."""
    return sorted(set(items))


class Module:
    """A module as materialized inside a working set."""

    def __init__(self, identity: str, state: str, path: str = ""):
        """
        Initialize a Module instance.

        Args:
            identity: Canonical identity (relative path ending in .ko)
            state: One of MODULE_STATES
            path: On-disk relative path, compression suffix preserved
        """
        if state not in MODULE_STATES:
            raise ValueError(f"unknown module state: {state}")
        self.identity = normalize(identity)
        self.state = state
        self.path = path

    def __eq__(self, other) -> bool:
        if not isinstance(other, Module):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        path_str = self.path if self.path else "N/A"
        return (f"Module: {self.identity} ({self.state})\n"
                f"  File Path: {path_str}\n")

    def __repr__(self) -> str:
        return f"Module(identity='{self.identity}', state='{self.state}')"

    def to_dict(self) -> dict:
        return {
            'identity': self.identity,
            'state': self.state,
            'path': self.path
        }


class SeedResolution:
    """Outcome of mapping a seed list onto the module tree."""

    def __init__(self, resolved: Iterable[str] = (), missing: Iterable[str] = (),
                 builtins: Iterable[str] = ()):
        """
        Initialize a SeedResolution instance.

        Args:
            resolved: Relative paths found on disk (compression suffix preserved)
            missing: Original entries that matched nothing
            builtins: modules.builtin entries the seeds named
        """
        self.resolved = sorted_unique(resolved)
        self.missing = sorted_unique(missing)
        self.builtins = sorted_unique(builtins)

    @property
    def identities(self) -> Set[str]:
        return {normalize(rel) for rel in self.resolved}

    def __repr__(self) -> str:
        return (f"SeedResolution(resolved={len(self.resolved)}, "
                f"missing={len(self.missing)}, builtins={len(self.builtins)})")

    def to_dict(self) -> dict:
        return {
            'resolved': list(self.resolved),
            'missing': list(self.missing),
            'builtins': list(self.builtins)
        }


class Closure:
    """Forward dependency closure of one labelled seed list."""

    ARTIFACTS = ('builtins', 'resolved', 'closure', 'added_deps', 'missing', 'modules')

    def __init__(self, label: str, seeds: SeedResolution, closure: Iterable[str] = (),
                 added_deps: Iterable[str] = (), missing: Iterable[str] = (),
                 provenance: Optional[Dict[str, str]] = None,
                 members: Iterable[Module] = ()):
        """
        Initialize a Closure instance.

        Args:
            label: Run label ("initramfs", "require" ...)
            seeds: Seed resolution the closure was computed from
            closure: Every module reached, in the textual form first met
            added_deps: "dependency <- required by owner" provenance lines
            missing: Unresolved seeds plus dependencies absent from disk
            provenance: identity -> identity of the module that first required it
            members: Module records of the closure and of its builtin seeds
        """
        self.label = label
        self.seeds = seeds
        self.closure = sorted_unique(closure)
        self.modules = sorted_unique(normalize(rel) for rel in self.closure)
        self.added_deps = sorted_unique(added_deps)
        self.missing = sorted_unique(list(seeds.missing) + list(missing))
        self.provenance = dict(provenance or {})
        records = {module.identity: module for module in members}
        self.members = [records[identity] for identity in sorted(records)]

    @property
    def builtins(self) -> List[str]:
        return self.seeds.builtins

    @property
    def resolved(self) -> List[str]:
        return self.seeds.resolved

    @property
    def identities(self) -> Set[str]:
        return set(self.modules)

    @property
    def states(self) -> Dict[str, str]:
        """identity -> on-disk state (present, present-compressed, builtin, missing)."""
        return {module.identity: module.state for module in self.members}

    def __contains__(self, ref: str) -> bool:
        return normalize(ref) in self.identities

    def __len__(self) -> int:
        return len(self.modules)

    def __str__(self) -> str:
        return (f"Closure: {self.label}\n"
                f"  Seeds: {len(self.resolved)} resolved, {len(self.seeds.missing)} missing, "
                f"{len(self.builtins)} builtin\n"
                f"  Modules: {len(self.modules)}\n"
                f"  Added Dependencies: {len(self.added_deps)}\n"
                f"  Missing: {len(self.missing)}\n")

    def __repr__(self) -> str:
        return f"Closure(label='{self.label}', modules={len(self.modules)})"

    def artifacts(self) -> Dict[str, List[str]]:
        """Return artifact file name -> lines for this closure."""
        return {f"{self.label}.{name}": list(getattr(self, name)) for name in self.ARTIFACTS}

    def to_dict(self) -> dict:
        data = {'label': self.label}
        for name in self.ARTIFACTS:
            data[name] = list(getattr(self, name))
        data['states'] = self.states
        return data


class ProtectedSet:
    """A labelled set of canonical identities excludes must never touch."""

    def __init__(self, label: str, members: Iterable[str]):
        self.label = label
        self.members = {normalize(m) for m in members}

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return f"ProtectedSet(label='{self.label}', members={len(self.members)})"


class ExcludeResolution:
    """Exclude request accepted by the linter."""

    def __init__(self, requested: Iterable[str], resolved: Iterable[str],
                 ignored: Iterable[str], reverse_closure: Iterable[str] = ()):
        """
        Initialize an ExcludeResolution instance.

        Args:
            requested: Patterns as listed by the user
            resolved: On-disk relative paths matched by the patterns
            ignored: Patterns that matched nothing
            reverse_closure: Identities lost when the resolved excludes go
        """
        self.requested = sorted_unique(requested)
        self.resolved = sorted_unique(resolved)
        self.ignored = sorted_unique(ignored)
        self.reverse_closure = sorted_unique(reverse_closure)

    @property
    def identities(self) -> List[str]:
        return sorted_unique(normalize(rel) for rel in self.resolved)

    def __repr__(self) -> str:
        return (f"ExcludeResolution(resolved={len(self.resolved)}, "
                f"ignored={len(self.ignored)})")

    def artifacts(self) -> Dict[str, List[str]]:
        return {
            'exclude.resolved': list(self.resolved),
            'exclude.ignored': list(self.ignored)
        }

    def to_dict(self) -> dict:
        return {
            'requested': list(self.requested),
            'resolved': list(self.resolved),
            'ignored': list(self.ignored),
            'reverse_closure': list(self.reverse_closure)
        }


class PayloadResolution:
    """Partition of the payload universe into kept and dropped modules."""

    def __init__(self, union: Iterable[str], final: Iterable[str],
                 dropped: Iterable[str], excluded: Iterable[str] = (),
                 reverse_deps: Iterable[str] = ()):
        """
        Initialize a PayloadResolution instance.

        Args:
            union: Payload universe (every module keyed in modules.dep)
            final: Modules kept in the payload
            dropped: Modules removed only because they depend on an exclude
            excluded: Accepted excludes (canonical identities)
            reverse_deps: "dependency dependent" edges restricted to the union
        """
        self.union = sorted_unique(union)
        self.final = sorted_unique(final)
        self.dropped = sorted_unique(dropped)
        self.excluded = sorted_unique(excluded)
        self.reverse_deps = sorted_unique(reverse_deps)

    def __len__(self) -> int:
        return len(self.final)

    def __str__(self) -> str:
        return (f"Payload: {len(self.final)} of {len(self.union)} modules kept\n"
                f"  Excluded: {len(self.excluded)}\n"
                f"  Dropped Dependents: {len(self.dropped)}\n")

    def __repr__(self) -> str:
        return (f"PayloadResolution(union={len(self.union)}, final={len(self.final)}, "
                f"dropped={len(self.dropped)})")

    def artifacts(self) -> Dict[str, List[str]]:
        return {
            'payload.union': list(self.union),
            'payload.final': list(self.final),
            'payload.drop_dependents': list(self.dropped),
            'payload.reverse_deps': list(self.reverse_deps)
        }

    def to_dict(self) -> dict:
        return {
            'union': list(self.union),
            'final': list(self.final),
            'dropped': list(self.dropped),
            'excluded': list(self.excluded)
        }
