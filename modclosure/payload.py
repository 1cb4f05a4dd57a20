"""
Payload resolution.

The payload is every module of the kernel build minus the accepted excludes
and, transitively, every module depending on one of them.
"""

import sys
from typing import Iterable

from .errors import EmptyPayloadError
from .graph import reverse_closure
from .index import DependencyIndex
from .models import PayloadResolution
from .names import normalize


class PayloadResolver:
    """Cascade exclusions through the reverse dependency map."""

    def __init__(self, index: DependencyIndex, verbose: bool = False):
        self.index = index
        self.verbose = verbose

    def resolve(self, excludes: Iterable[str], strict_empty: bool = False) -> PayloadResolution:
        """
        Compute the final payload.

        Args:
            excludes: Accepted excludes (any spelling; normalized here)
            strict_empty: Fail when nothing is left in the payload

        Returns:
            PayloadResolution: union, final and dropped-dependent lists

        Raises:
            EmptyPayloadError: If strict_empty and the final payload is empty
        """
        universe = set(self.index.universe)
        excluded = {normalize(rel) for rel in excludes}
        restricted = self.index.restrict(universe)

        cascade = reverse_closure(excluded, restricted)
        final = universe - cascade
        dropped = (universe & cascade) - excluded

        for module in sorted(dropped):
            print(f"Warning: pruning {module}: depends on an excluded module",
                  file=sys.stderr)

        result = PayloadResolution(universe, final, dropped, excluded,
                                   self.index.reverse_edges(restricted))
        if self.verbose:
            print(f"[modclosure] payload_final entries: {len(result.final)}; "
                  f"pruned dependents: {len(result.dropped)}", file=sys.stderr)

        if strict_empty and not result.final:
            raise EmptyPayloadError()
        return result
