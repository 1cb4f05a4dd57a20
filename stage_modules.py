#!/usr/bin/env python3
"""
Kernel Module Stager

This script decides which kernel modules of a ``lib/modules/<KVER>`` tree go
into the initramfs (the early-boot closure) and which into the installable
payload (every module minus excludes, with dependents pruned). It writes
newline-delimited lists for the copy, compress and annotate steps of an
image build.
"""

import os
import sys
import argparse

from modclosure import __version__
from modclosure.errors import ExcludeConflictError, ResolverError
from modclosure.formatters import CSVFormatter, JSONFormatter, build_report
from modclosure.models import ProtectedSet
from modclosure.parsers import ListFileParser
from modclosure.resolver import (
    EARLYBOOT_CLOSURE_LABEL, REQUIRE_CLOSURE_LABEL, REQUIRE_SEEDS_LABEL, ModuleResolver
)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--modules-dir', '-m', required=True, metavar='DIR',
                        help='Path to lib/modules/<KVER> (or lib/modules with a single KVER)')
    common.add_argument('--out-dir', default='.modgraph', metavar='DIR',
                        help='Where to write list artifacts (default: .modgraph)')
    common.add_argument('--json', action='store_true',
                        help='Print a JSON report instead of the summary')
    common.add_argument('--csv', action='store_true',
                        help='Print a CSV table of module dispositions')
    common.add_argument('--output', '-o', type=str, metavar='FILE',
                        help='Write the report to FILE instead of stdout')
    common.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress the summary')
    common.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose output with additional debugging information')

    parser = argparse.ArgumentParser(
        description="Resolve kernel module closures for the initramfs and the installable payload",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 stage_modules.py resolve -m out/lib/modules/6.9.0           # Full run with ./config lists
  python3 stage_modules.py resolve -m out/lib/modules --strict-empty   # Fail on an empty payload
  python3 stage_modules.py resolve -m out/lib/modules --describe       # Annotate with descriptions
  python3 stage_modules.py graph -m out/lib/modules --seed config/modules.earlyboot --label initramfs
  python3 stage_modules.py lint -m out/lib/modules --exclude config/modules.exclude \\
      --earlyboot-closure .modgraph/initramfs.modules
  python3 stage_modules.py payload -m out/lib/modules --excludes .modgraph/exclude.resolved
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}',
                        help='Show version information')
    commands = parser.add_subparsers(dest='command', metavar='COMMAND')
    commands.required = True

    graph = commands.add_parser('graph', parents=[common],
                                help='Compute the dependency closure of a seed list')
    graph.add_argument('--seed', required=True, metavar='FILE',
                       help='Seed list (missing or empty file is an empty seed set)')
    graph.add_argument('--label', required=True,
                       help='Artifact prefix, e.g. initramfs or require')

    lint = commands.add_parser('lint', parents=[common],
                               help='Expand excludes and check them against protected sets')
    lint.add_argument('--exclude', metavar='FILE',
                      help='Requested excludes (basenames or paths; compressed ok)')
    lint.add_argument('--require-resolved', metavar='FILE',
                      help='Protected: resolved --require seeds')
    lint.add_argument('--require-closure', metavar='FILE',
                      help='Protected: closure of the --require seeds')
    lint.add_argument('--earlyboot-closure', metavar='FILE',
                      help='Protected: initramfs closure')

    payload = commands.add_parser('payload', parents=[common],
                                  help='Cascade accepted excludes into the final payload')
    payload.add_argument('--excludes', metavar='FILE',
                         help='Accepted excludes (as written by lint)')
    payload.add_argument('--strict-empty', action='store_true',
                         help='Fail if the final payload list ends up empty')

    resolve = commands.add_parser('resolve', parents=[common],
                                  help='Run closures, exclude lint and payload resolution')
    resolve.add_argument('--config-dir', default='config', metavar='DIR',
                         help='Directory holding modules.earlyboot/require/exclude (default: config)')
    resolve.add_argument('--earlyboot', metavar='FILE',
                         help='Seed list for the initramfs (default: CONFIG_DIR/modules.earlyboot)')
    resolve.add_argument('--require', metavar='FILE',
                         help='Seed list excludes must not break (default: CONFIG_DIR/modules.require)')
    resolve.add_argument('--exclude', metavar='FILE',
                         help='Requested excludes (default: CONFIG_DIR/modules.exclude)')
    resolve.add_argument('--strict-empty', action='store_true',
                         help='Fail if the final payload list ends up empty')
    resolve.add_argument('--describe', action='store_true',
                         help='Append .modinfo descriptions to annotated lists')
    return parser


def run_graph(args, resolver: ModuleResolver):
    closure = resolver.closure(ListFileParser.parse(args.seed), args.label)
    return [closure], None, None, str(closure)


def run_lint(args, resolver: ModuleResolver):
    protected = []
    for label, path in ((REQUIRE_SEEDS_LABEL, args.require_resolved),
                        (REQUIRE_CLOSURE_LABEL, args.require_closure),
                        (EARLYBOOT_CLOSURE_LABEL, args.earlyboot_closure)):
        if path:
            protected.append(ProtectedSet(label, ListFileParser.parse(path, required=True)))
    excludes = resolver.lint(ListFileParser.parse(args.exclude), protected)
    summary = (f"Excludes: {len(excludes.resolved)} resolved, "
               f"{len(excludes.ignored)} ignored\n")
    return [], excludes, None, summary


def run_payload(args, resolver: ModuleResolver):
    payload = resolver.payload(ListFileParser.parse(args.excludes), args.strict_empty)
    return [], None, payload, str(payload)


def run_resolve(args, resolver: ModuleResolver):
    def pick(explicit, name):
        return explicit if explicit else os.path.join(args.config_dir, name)

    report = resolver.run(
        earlyboot=ListFileParser.parse(pick(args.earlyboot, 'modules.earlyboot')),
        require=ListFileParser.parse(pick(args.require, 'modules.require')),
        exclude=ListFileParser.parse(pick(args.exclude, 'modules.exclude')),
        strict_empty=args.strict_empty
    )
    return report.closures, report.excludes, report.payload, str(report)


COMMANDS = {
    'graph': run_graph,
    'lint': run_lint,
    'payload': run_payload,
    'resolve': run_resolve,
}


def main(argv=None) -> int:
    """Main function to run the module stager."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.verbose:
            print("Verbose mode enabled", file=sys.stderr)
            print(f"Arguments: {args}", file=sys.stderr)

        resolver = ModuleResolver(args.modules_dir, args.out_dir, verbose=args.verbose,
                                  describe=getattr(args, 'describe', False))
        closures, excludes, payload, summary = COMMANDS[args.command](args, resolver)

        if args.json:
            output_content = JSONFormatter().format(build_report(closures, excludes, payload)) + "\n"
        elif args.csv:
            output_content = CSVFormatter().format(closures, excludes, payload)
        elif args.quiet:
            output_content = ""
        else:
            output_content = summary

        if args.output:
            try:
                with open(args.output, 'w', encoding='utf-8') as f:
                    f.write(output_content)
                if args.verbose:
                    print(f"Output written to {args.output}", file=sys.stderr)
            except OSError as e:
                print(f"Error writing to file {args.output}: {e}", file=sys.stderr)
                return 1
        elif output_content:
            sys.stdout.write(output_content)
        return 0

    except ExcludeConflictError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Error: no excludes were accepted; fix the exclude list and retry", file=sys.stderr)
        return 1
    except ResolverError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
