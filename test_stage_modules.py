#!/usr/bin/env python3
"""
End-to-end tests for the resolution pipeline and the stage_modules CLI.
"""

import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

import zstandard as zstd

from modclosure.errors import EmptyPayloadError, ExcludeConflictError, MissingInputError
from modclosure.resolver import ModuleResolver
from stage_modules import main
from test_modclosure import SCENARIO_MAP, build_elf, build_tree


def read(path):
    with open(path, encoding='utf-8') as f:
        return f.read()


def snapshot(directory):
    """Return file name -> bytes for every file in directory."""
    contents = {}
    for name in sorted(os.listdir(directory)):
        with open(os.path.join(directory, name), 'rb') as f:
            contents[name] = f.read()
    return contents


class PipelineTestCase(unittest.TestCase):

    def setUp(self):
        self.maxDiff = None
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        self.out = os.path.join(self.root, 'out')

    def tearDown(self):
        self._tmp.cleanup()

    def write_list(self, name, entries):
        path = os.path.join(self.root, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w') as f:
            f.write("".join(entry + "\n" for entry in entries))
        return path

    def artifact(self, name):
        return read(os.path.join(self.out, name))


class TestModuleResolver(PipelineTestCase):
    """Test the full in-process pipeline."""

    def run_resolver(self, earlyboot=(), require=(), exclude=(), out=None,
                     strict_empty=False, **kwargs):
        moddir = os.path.join(self.root, 'lib', 'modules', '6.1.0')
        if not os.path.isdir(moddir):
            build_tree(self.root, SCENARIO_MAP)
        with redirect_stderr(io.StringIO()):
            resolver = ModuleResolver(moddir, out or self.out, **kwargs)
            return resolver.run(earlyboot, require, exclude, strict_empty)

    def test_exclude_cascade_artifacts(self):
        """Excluding a dependency of unprotected modules prunes them from the payload."""
        report = self.run_resolver(earlyboot=["d.ko"], exclude=["a.ko"])

        self.assertEqual(report.payload.final, ["d.ko"])
        self.assertEqual(self.artifact('initramfs.closure'), "d.ko\n")
        self.assertEqual(self.artifact('require.closure'), "")
        self.assertEqual(self.artifact('exclude.resolved'), "a.ko\n")
        self.assertEqual(self.artifact('exclude.ignored'), "")
        self.assertEqual(self.artifact('payload.union'), "a.ko\nb.ko\nc.ko\nd.ko\n")
        self.assertEqual(self.artifact('payload.final'), "d.ko\n")
        self.assertEqual(self.artifact('payload.drop_dependents'), "b.ko\nc.ko\n")
        self.assertEqual(self.artifact('reverse_deps.full'), "a.ko b.ko\nb.ko c.ko\n")
        self.assertEqual(self.artifact('exclude.resolved.annot'), "a.ko # explicitly excluded\n")
        self.assertEqual(self.artifact('exclude.payload-closure.annot'),
                         "b.ko # pruned: depends-on excluded\n"
                         "c.ko # pruned: depends-on excluded\n")
        self.assertEqual(self.artifact('initramfs.closure.annot'), "d.ko # seed: initramfs\n")

        data = json.loads(self.artifact('report.json'))
        self.assertEqual(data['system'], {'kver': '6.1.0'})
        self.assertEqual(data['summary']['dropped_dependents'], 2)

    def test_conflict_writes_no_exclude_artifacts(self):
        """A rejected exclude request leaves no exclude or payload output behind."""
        os.makedirs(self.out)
        with open(os.path.join(self.out, 'exclude.resolved'), 'w') as f:
            f.write("stale.ko\n")

        with self.assertRaises(ExcludeConflictError) as cm:
            self.run_resolver(earlyboot=["c.ko"], exclude=["a.ko"])

        self.assertEqual([c[0] for c in cm.exception.conflicts], ["a.ko", "b.ko", "c.ko"])
        files = os.listdir(self.out)
        self.assertNotIn('exclude.resolved', files)
        self.assertNotIn('exclude.ignored', files)
        self.assertNotIn('payload.final', files)
        self.assertIn('initramfs.closure', files)

    def test_require_protects_dependencies(self):
        """Modules required for the payload protect their dependencies too."""
        with self.assertRaises(ExcludeConflictError) as cm:
            self.run_resolver(require=["b"], exclude=["a"])
        self.assertEqual(cm.exception.labels, [
            "--require (payload must-keep)", "dependencies of --require modules"])

    def test_strict_empty(self):
        """Strict mode rejects a run that leaves nothing in the payload."""
        with self.assertRaises(EmptyPayloadError):
            self.run_resolver(exclude=["a.ko", "d.ko"], strict_empty=True)

    def test_deterministic_output(self):
        """Identical inputs give byte-identical artifacts."""
        outputs = []
        for name in ('first', 'second'):
            out = os.path.join(self.root, name)
            self.run_resolver(earlyboot=["c.ko"], require=["d"], exclude=["nope"], out=out)
            outputs.append(snapshot(out))
        self.assertEqual(outputs[0], outputs[1])
        self.assertEqual(len(outputs[0]), 24)

    def test_annotations_with_descriptions(self):
        """Descriptions from .modinfo are appended to annotated lines."""
        files = {
            name: build_elf(f"description={name[0].upper()} driver\x00".encode())
            for name in ("a.ko", "b.ko", "c.ko.zst", "d.ko")
        }
        files["c.ko.zst"] = zstd.ZstdCompressor().compress(files["c.ko.zst"])
        build_tree(self.root, ["a.ko:", "b.ko: a.ko", "c.ko.zst: b.ko", "d.ko:"], files)

        self.run_resolver(earlyboot=["c"], describe=True)
        self.assertEqual(self.artifact('initramfs.closure.annot'),
                         "a.ko # dep-of: initramfs (required by b.ko)  [A driver]\n"
                         "b.ko # dep-of: initramfs (required by c.ko)  [B driver]\n"
                         "c.ko # seed: initramfs  [C driver]\n")

    def test_in_memory(self):
        """Without an output directory nothing is written."""
        build_tree(self.root, SCENARIO_MAP)
        moddir = os.path.join(self.root, 'lib', 'modules')
        with redirect_stderr(io.StringIO()):
            resolver = ModuleResolver(moddir)
            report = resolver.run(["c.ko"], [], ["d.ko"])
        self.assertEqual(report.payload.final, ["a.ko", "b.ko", "c.ko"])
        self.assertFalse(os.path.exists(self.out))

    def test_missing_modules_dep(self):
        """A module tree without modules.dep cannot be resolved."""
        moddir = build_tree(self.root, SCENARIO_MAP)
        os.unlink(os.path.join(moddir, 'modules.dep'))
        with self.assertRaises(MissingInputError):
            ModuleResolver(moddir)


class TestCommandLine(PipelineTestCase):
    """Test stage_modules.main exit codes and outputs."""

    def setUp(self):
        super().setUp()
        self.moddir = build_tree(self.root, SCENARIO_MAP)

    def run_main(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_resolve_with_config_dir(self):
        """resolve reads its lists from the config directory."""
        self.write_list('config/modules.earlyboot', ["# initramfs", "d.ko"])
        self.write_list('config/modules.exclude', ["a.ko"])
        code, stdout, _ = self.run_main(
            'resolve', '-m', self.moddir, '--out-dir', self.out,
            '--config-dir', os.path.join(self.root, 'config'))
        self.assertEqual(code, 0)
        self.assertIn("Payload: 1 of 4 modules kept", stdout)
        self.assertEqual(self.artifact('payload.final'), "d.ko\n")
        self.assertEqual(self.artifact('payload.drop_dependents'), "b.ko\nc.ko\n")

    def test_resolve_conflict_exit_code(self):
        """An exclude conflict is reported on stderr and fails the run."""
        self.write_list('config/modules.earlyboot', ["c.ko"])
        self.write_list('config/modules.exclude', ["a.ko"])
        code, _, stderr = self.run_main(
            'resolve', '-m', self.moddir, '--out-dir', self.out,
            '--config-dir', os.path.join(self.root, 'config'), '-q')
        self.assertEqual(code, 1)
        self.assertIn("Error: --exclude conflicts with protected modules:", stderr)
        self.assertIn("c.ko: initramfs closure (early boot) (depends on excluded a.ko)", stderr)
        self.assertIn("no excludes were accepted", stderr)
        self.assertFalse(os.path.exists(os.path.join(self.out, 'exclude.resolved')))

    def test_stages_one_by_one(self):
        """graph, lint and payload can run as separate steps."""
        seed = self.write_list('seed', ["c.ko"])
        code, _, _ = self.run_main('graph', '-m', self.moddir, '--out-dir', self.out,
                                   '--seed', seed, '--label', 'initramfs', '-q')
        self.assertEqual(code, 0)
        self.assertEqual(self.artifact('initramfs.modules'), "a.ko\nb.ko\nc.ko\n")
        self.assertEqual(self.artifact('initramfs.added_deps'),
                         "a.ko <- required by b.ko\nb.ko <- required by c.ko\n")
        self.assertEqual(self.artifact('initramfs.missing'), "")

        exclude = self.write_list('exclude', ["d.ko", "nope"])
        code, stdout, _ = self.run_main(
            'lint', '-m', self.moddir, '--out-dir', self.out, '--exclude', exclude,
            '--earlyboot-closure', os.path.join(self.out, 'initramfs.modules'))
        self.assertEqual(code, 0)
        self.assertEqual(stdout, "Excludes: 1 resolved, 1 ignored\n")
        self.assertEqual(self.artifact('exclude.ignored'), "nope\n")

        code, _, _ = self.run_main(
            'payload', '-m', self.moddir, '--out-dir', self.out, '-q',
            '--excludes', os.path.join(self.out, 'exclude.resolved'))
        self.assertEqual(code, 0)
        self.assertEqual(self.artifact('payload.final'), "a.ko\nb.ko\nc.ko\n")

    def test_lint_conflict(self):
        """lint fails when a protected list contains a dependent of an exclude."""
        protected = self.write_list('protected', ["c.ko"])
        exclude = self.write_list('exclude', ["a.ko"])
        code, _, stderr = self.run_main(
            'lint', '-m', self.moddir, '--out-dir', self.out, '--exclude', exclude,
            '--require-closure', protected)
        self.assertEqual(code, 1)
        self.assertIn("dependencies of --require modules", stderr)

    def test_lint_missing_protected_list(self):
        """A protected list named on the command line must exist."""
        code, _, stderr = self.run_main(
            'lint', '-m', self.moddir, '--out-dir', self.out,
            '--earlyboot-closure', os.path.join(self.root, 'absent'))
        self.assertEqual(code, 1)
        self.assertIn("list file not found", stderr)

    def test_payload_strict_empty(self):
        excludes = self.write_list('excludes', ["a.ko", "d.ko"])
        code, _, stderr = self.run_main(
            'payload', '-m', self.moddir, '--out-dir', self.out,
            '--excludes', excludes, '--strict-empty')
        self.assertEqual(code, 1)
        self.assertIn("final payload is empty", stderr)

    def test_json_and_csv_reports(self):
        """--json prints a report; --csv --output writes a table to a file."""
        self.write_list('config/modules.earlyboot', ["d.ko"])
        self.write_list('config/modules.exclude', ["a.ko"])
        args = ['resolve', '-m', self.moddir, '--out-dir', self.out,
                '--config-dir', os.path.join(self.root, 'config')]

        code, stdout, _ = self.run_main(*args, '--json')
        self.assertEqual(code, 0)
        report = json.loads(stdout)
        self.assertEqual(report['summary']['payload_final'], 1)
        self.assertEqual(report['payload']['dropped'], ["b.ko", "c.ko"])
        self.assertEqual(report['closures']['initramfs']['states'], {"d.ko": "present"})

        table = os.path.join(self.root, 'table.csv')
        code, stdout, _ = self.run_main(*args, '--csv', '--output', table)
        self.assertEqual(code, 0)
        self.assertEqual(stdout, "")
        self.assertEqual(read(table).splitlines(), [
            "Module,State,Closures,Payload", "a.ko,,,excluded", "b.ko,,,dropped",
            "c.ko,,,dropped", "d.ko,present,initramfs,kept"])

    def test_missing_inputs(self):
        """Missing module trees and dependency maps exit with status 1."""
        code, _, stderr = self.run_main('resolve', '-m', os.path.join(self.root, 'absent'))
        self.assertEqual(code, 1)
        self.assertIn("modules dir not found", stderr)

        os.unlink(os.path.join(self.moddir, 'modules.dep'))
        code, _, stderr = self.run_main('resolve', '-m', self.moddir, '--out-dir', self.out)
        self.assertEqual(code, 1)
        self.assertIn("modules.dep not found", stderr)

    def test_undecodable_modules_dep(self):
        """A modules.dep that is not UTF-8 is reported by path, not as an unexpected error."""
        dep_path = os.path.join(self.moddir, 'modules.dep')
        with open(dep_path, 'wb') as f:
            f.write(b'kernel/a\xff.ko:\n')
        code, _, stderr = self.run_main('resolve', '-m', self.moddir, '--out-dir', self.out)
        self.assertEqual(code, 1)
        self.assertIn(f"Error: modules.dep is not valid UTF-8 text: {dep_path}", stderr)
        self.assertNotIn("Unexpected error", stderr)

    def test_usage_errors(self):
        """argparse handles --version and missing subcommands."""
        with redirect_stdout(io.StringIO()) as out:
            with self.assertRaises(SystemExit) as cm:
                main(['--version'])
        self.assertEqual(cm.exception.code, 0)
        self.assertIn("1.0.0", out.getvalue())

        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main([])
        self.assertEqual(cm.exception.code, 2)


if __name__ == '__main__':
    loader = unittest.TestLoader()
    suite = loader.loadTestsFromModule(sys.modules[__name__])
    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)
    sys.exit(0 if result.wasSuccessful() else 1)
