"""
Module resolution pipeline.

Wires the stages together in memory: seed closures for the initramfs and
for the required set, exclude linting against both, and payload cascade.
Results are persisted only at the end of each stage.
"""

import os
import sys
from typing import Dict, Iterable, List, Optional

from .annotations import Annotator
from .closure import ClosureEngine
from .errors import ExcludeConflictError
from .excludes import ExcludeLinter
from .formatters import JSONFormatter, build_report
from .models import Closure, ExcludeResolution, PayloadResolution, ProtectedSet
from .parsers import BuiltinModuleParser, DepMapParser
from .payload import PayloadResolver
from .seeds import SeedResolver
from .tree import ModuleTree, locate_module_dir
from .writer import ArtifactWriter

EARLYBOOT_LABEL = "initramfs"
REQUIRE_LABEL = "require"

REQUIRE_SEEDS_LABEL = "--require (payload must-keep)"
REQUIRE_CLOSURE_LABEL = "dependencies of --require modules"
EARLYBOOT_CLOSURE_LABEL = "initramfs closure (early boot)"


class ResolutionReport:
    """Everything a full run produced."""

    def __init__(self, earlyboot: Closure, require: Closure,
                 excludes: ExcludeResolution, payload: PayloadResolution):
        self.earlyboot = earlyboot
        self.require = require
        self.excludes = excludes
        self.payload = payload

    @property
    def closures(self) -> List[Closure]:
        return [self.earlyboot, self.require]

    def __str__(self) -> str:
        return (f"{self.earlyboot}{self.require}"
                f"Excludes: {len(self.excludes.resolved)} resolved, "
                f"{len(self.excludes.ignored)} ignored\n"
                f"{self.payload}")


class ModuleResolver:
    """Resolve initramfs and payload module sets for one kernel module tree."""

    def __init__(self, modules_dir: str, out_dir: Optional[str] = None,
                 verbose: bool = False, describe: bool = False):
        """
        Initialize a ModuleResolver.

        Args:
            modules_dir: ``.../lib/modules`` or ``.../lib/modules/<KVER>``
            out_dir: Where artifacts are written; None keeps results in memory
            verbose: Progress lines on stderr
            describe: Add .modinfo descriptions to annotations

        Raises:
            MissingInputError: If the module tree or its modules.dep is absent
        """
        self.modules_dir = locate_module_dir(modules_dir)
        self.tree = ModuleTree(self.modules_dir)
        self.verbose = verbose
        self.describe = describe
        self._log(f"KVER={self.tree.kver}, MODDIR={self.modules_dir}")

        self.index = DepMapParser.parse(os.path.join(self.modules_dir, 'modules.dep'))
        self.builtins = BuiltinModuleParser.parse(os.path.join(self.modules_dir, 'modules.builtin'))
        self._log(f"indexed {len(self.index)} modules, {len(self.builtins)} builtins")

        self.writer = ArtifactWriter(out_dir) if out_dir else None

    def _log(self, message: str):
        if self.verbose:
            print(f"[modclosure] {message}", file=sys.stderr)

    def _persist(self, artifacts: Dict[str, List[str]]):
        if self.writer is not None:
            for path in self.writer.write_all(artifacts):
                self._log(f"wrote {path}")

    def closure(self, entries: Iterable[str], label: str) -> Closure:
        """Resolve a seed list and compute its closure."""
        seeds = SeedResolver(self.tree, self.builtins, self.verbose).resolve(entries)
        result = ClosureEngine(self.index, self.tree, self.verbose).compute(seeds, label)
        self._persist(result.artifacts())
        return result

    def protected_sets(self, earlyboot: Optional[Closure],
                       require: Optional[Closure]) -> List[ProtectedSet]:
        sets = []
        if require is not None:
            sets.append(ProtectedSet(REQUIRE_SEEDS_LABEL, require.seeds.identities))
            sets.append(ProtectedSet(REQUIRE_CLOSURE_LABEL, require.modules))
        if earlyboot is not None:
            sets.append(ProtectedSet(EARLYBOOT_CLOSURE_LABEL, earlyboot.modules))
        return sets

    def lint(self, patterns: Iterable[str],
             protected: Iterable[ProtectedSet] = ()) -> ExcludeResolution:
        """
        Expand and lint an exclude request.

        Raises:
            ExcludeConflictError: Nothing is written in that case
        """
        self._log("checking excludes against protected sets")
        self._persist({'reverse_deps.full': self.index.reverse_edges()})
        linter = ExcludeLinter(self.tree, self.index.reverse, self.verbose)
        try:
            result = linter.lint(list(patterns), protected)
        except ExcludeConflictError:
            if self.writer is not None:
                self.writer.remove('exclude.resolved', 'exclude.ignored')
            raise
        self._persist(result.artifacts())
        return result

    def payload(self, excludes: Iterable[str], strict_empty: bool = False) -> PayloadResolution:
        """Compute payload.final from accepted excludes."""
        self._log("compute payload: union - closure(excludes) via reverse-deps")
        result = PayloadResolver(self.index, self.verbose).resolve(excludes, strict_empty)
        self._persist(result.artifacts())
        return result

    def run(self, earlyboot: Iterable[str] = (), require: Iterable[str] = (),
            exclude: Iterable[str] = (), strict_empty: bool = False) -> ResolutionReport:
        """
        Run every stage.

        Args:
            earlyboot: Seed entries for the initramfs
            require: Seed entries that must survive in the payload
            exclude: Exclude patterns
            strict_empty: Fail if the final payload is empty

        Returns:
            ResolutionReport: Results of every stage

        Raises:
            ExcludeConflictError: If the excludes would break a protected set
            EmptyPayloadError: If strict_empty and the payload is empty
        """
        self._log(f"graph earlyboot -> label={EARLYBOOT_LABEL}")
        eb = self.closure(earlyboot, EARLYBOOT_LABEL)
        self._log(f"graph require -> label={REQUIRE_LABEL}")
        req = self.closure(require, REQUIRE_LABEL)

        excludes = self.lint(exclude, self.protected_sets(eb, req))
        payload = self.payload(excludes.resolved, strict_empty)

        report = ResolutionReport(eb, req, excludes, payload)
        annotator = Annotator(self.tree, self.describe)
        self._persist(annotator.artifacts(eb, req, excludes, payload))
        if self.writer is not None:
            data = build_report(report.closures, excludes, payload,
                                system_info={'kver': self.tree.kver})
            self.writer.write_text('report.json', JSONFormatter().format(data) + "\n")
        return report
