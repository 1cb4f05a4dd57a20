"""
Exceptions raised by the module resolver.

Only structural problems (missing inputs) and safety violations (exclude
conflicts, strict-empty payloads) are raised; unresolvable individual
entries are recorded as diagnostics instead.
"""

from typing import List, Sequence, Tuple


class ResolverError(Exception):
    """Base class for fatal resolver conditions."""


class MissingInputError(ResolverError):
    """A required input (module tree, modules.dep, list file) is absent."""

    def __init__(self, what: str, path: str):
        self.what = what
        self.path = path
        super().__init__(f"{what} not found: {path}")

    def __str__(self) -> str:
        return f"{self.what} not found: {self.path}"


class MalformedInputError(ResolverError):
    """A required input exists but cannot be decoded."""

    def __init__(self, what: str, path: str, reason: str):
        self.what = what
        self.path = path
        super().__init__(f"{what} is not valid UTF-8 text: {path} ({reason})")


class ExcludeConflictError(ResolverError):
    """
    Excluding the requested modules would break a protected set.

    Attributes:
        conflicts: (module, protected set label, excluded modules pulling it in)
    """

    def __init__(self, conflicts: Sequence[Tuple[str, str, Sequence[str]]]):
        self.conflicts: List[Tuple[str, str, Tuple[str, ...]]] = [
            (module, label, tuple(via)) for module, label, via in conflicts
        ]
        super().__init__(self._message())

    def _message(self) -> str:
        lines = ["--exclude conflicts with protected modules:"]
        for module, label, via in self.conflicts:
            cause = ""
            if via and tuple(via) != (module,):
                cause = f" (depends on excluded {', '.join(via)})"
            lines.append(f"  {module}: {label}{cause}")
        return "\n".join(lines)

    @property
    def labels(self) -> List[str]:
        return sorted({label for _, label, _ in self.conflicts})


class EmptyPayloadError(ResolverError):
    """The final payload is empty and strict mode was requested."""

    def __init__(self, message: str = "final payload is empty after excludes and cascade"):
        super().__init__(message)
