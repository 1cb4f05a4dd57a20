"""
Output formatters for resolver results.

This module contains classes for formatting resolver output: plain
newline-delimited lists for downstream tools, and JSON and CSV reports of a
whole run.
"""

import csv
import datetime
import io
import json
import platform
from typing import Dict, Iterable, List, Optional

from .models import Closure, ExcludeResolution, PayloadResolution


class BaseFormatter:
    """Base class for all formatters."""

    def format(self, *args, **kwargs) -> str:
        raise NotImplementedError


class ListFormatter(BaseFormatter):
    """Formatter for newline-delimited lists."""

    def format(self, lines: Iterable[str]) -> str:
        """One entry per line with a trailing newline; empty input gives ''."""
        lines = list(lines)
        return "\n".join(lines) + "\n" if lines else ""


def build_report(closures: List[Closure], excludes: Optional[ExcludeResolution] = None,
                 payload: Optional[PayloadResolution] = None,
                 system_info: Optional[Dict] = None) -> Dict:
    """Collect a run's results into one serializable dictionary."""
    if system_info is None:
        system_info = {
            'hostname': platform.node(),
            'timestamp': datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        }

    report = {
        'system': system_info,
        'closures': {c.label: c.to_dict() for c in closures},
        'summary': {
            'closures': {c.label: len(c.modules) for c in closures},
            'missing': sum(len(c.missing) for c in closures)
        }
    }
    if excludes is not None:
        report['excludes'] = excludes.to_dict()
        report['summary']['excluded'] = len(excludes.resolved)
        report['summary']['ignored_excludes'] = len(excludes.ignored)
    if payload is not None:
        report['payload'] = payload.to_dict()
        report['summary']['payload_union'] = len(payload.union)
        report['summary']['payload_final'] = len(payload.final)
        report['summary']['dropped_dependents'] = len(payload.dropped)
    return report


class JSONFormatter(BaseFormatter):
    """Formatter for JSON output."""

    def format(self, report: Dict) -> str:
        return json.dumps(report, indent=2, sort_keys=True)


class CSVFormatter(BaseFormatter):
    """Formatter for a per-module disposition table."""

    def format(self, closures: List[Closure], excludes: Optional[ExcludeResolution] = None,
               payload: Optional[PayloadResolution] = None) -> str:
        """
        Tabulate where each module ends up.

        Columns: Module, State (on-disk state recorded by a closure, if any),
        Closures (labels containing it), Payload (kept / excluded / dropped / n/a).
        """
        output = io.StringIO()
        writer = csv.writer(output, lineterminator='\n')
        writer.writerow(['Module', 'State', 'Closures', 'Payload'])

        excluded = set(excludes.identities) if excludes is not None else set()
        modules = set()
        for closure in closures:
            modules.update(closure.modules)
            modules.update(closure.states)
        if payload is not None:
            modules.update(payload.union)
        modules.update(excluded)

        final = set(payload.final) if payload is not None else set()
        dropped = set(payload.dropped) if payload is not None else set()

        members = [(c.label, c.identities) for c in closures]
        states = {}
        for closure in closures:
            for identity, state in closure.states.items():
                states.setdefault(identity, state)
        for module in sorted(modules):
            labels = [label for label, identities in members if module in identities]
            if module in excluded:
                status = 'excluded'
            elif module in dropped:
                status = 'dropped'
            elif module in final:
                status = 'kept'
            else:
                status = 'n/a'
            writer.writerow([module, states.get(module, ''), ' '.join(labels), status])

        return output.getvalue()
