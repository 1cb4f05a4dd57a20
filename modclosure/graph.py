"""
Traversal primitives over adjacency maps.

Both closures are memoized through a caller-owned ``seen`` set, which is
also what makes them terminate on cyclic graphs.
"""

from typing import Dict, Iterable, Mapping, Optional, Set


def forward_closure(seeds: Iterable[str], forward: Mapping[str, Iterable[str]],
                    seen: Optional[Set[str]] = None) -> Set[str]:
    """
    Return seeds plus everything they transitively depend on.

    Args:
        seeds: Canonical identities to start from
        forward: identity -> direct dependencies
        seen: Visited set to fill; a fresh one is used when omitted

    Returns:
        Set[str]: The visited set
    """
    seen = set() if seen is None else seen
    stack = list(seeds)
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        stack.extend(dep for dep in forward.get(node, ()) if dep not in seen)
    return seen


def reverse_closure(seeds: Iterable[str], reverse: Mapping[str, Iterable[str]],
                    seen: Optional[Set[str]] = None) -> Set[str]:
    """
    Return seeds plus every module that transitively depends on one of them.

    Args:
        seeds: Canonical identities being removed
        reverse: identity -> direct dependents
        seen: Visited set to fill; a fresh one is used when omitted

    Returns:
        Set[str]: The visited set
    """
    return forward_closure(seeds, reverse, seen)


def attribute(seeds: Iterable[str], reverse: Mapping[str, Iterable[str]]) -> Dict[str, Set[str]]:
    """Map each module of the reverse closure to the seeds that reach it."""
    causes: Dict[str, Set[str]] = {}
    for seed in seeds:
        for node in reverse_closure([seed], reverse):
            causes.setdefault(node, set()).add(seed)
    return causes
