"""
Parsers for module resolver inputs.

This module contains classes for parsing the text inputs of a run: seed,
exclude and protected-set lists, the modules.dep dependency map and the
modules.builtin list of compiled-in modules.
"""

import os
import sys
from typing import Dict, List

from .errors import MalformedInputError, MissingInputError
from .index import DependencyIndex
from .names import module_name


class ListFileParser:
    """Parser for one-entry-per-line list files."""

    @staticmethod
    def parse_lines(lines) -> List[str]:
        """
        Return the entries of a list, skipping blank lines and # comments.

        Entries keep their order; de-duplication is left to the consumer.
        """
        entries = []
        for line in lines:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            entries.append(line)
        return entries

    @staticmethod
    def parse(path: str, required: bool = False) -> List[str]:
        """
        Parse a seed, exclude or protected-set list file.

        Args:
            path: Path to the list file
            required: Raise instead of returning an empty list when absent

        Returns:
            List[str]: Entries in file order

        Raises:
            MissingInputError: If required and the file does not exist
            MalformedInputError: If the file is not valid UTF-8
        """
        if not path or not os.path.isfile(path):
            if required:
                raise MissingInputError("list file", path)
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return ListFileParser.parse_lines(f)
        except OSError as e:
            raise MissingInputError("readable list file", f"{path} ({e.strerror})")
        except UnicodeDecodeError as e:
            raise MalformedInputError("list file", path, e.reason)


class DepMapParser:
    """Parser for modules.dep."""

    @staticmethod
    def parse_lines(lines) -> DependencyIndex:
        """
        Build a DependencyIndex from modules.dep lines.

        Line format: ``relative/path/module.ko: dep1 dep2 ...``
        """
        index = DependencyIndex()
        for line in lines:
            line = line.strip()
            if not line:
                continue
            module, sep, deps = line.partition(':')
            module = module.strip()
            if not sep or not module:
                continue
            index.add(module, deps.split())
        return index

    @staticmethod
    def parse(path: str) -> DependencyIndex:
        """
        Parse a modules.dep file.

        Raises:
            MissingInputError: If the file is absent or unreadable
            MalformedInputError: If the file is not valid UTF-8
        """
        if not os.path.isfile(path):
            raise MissingInputError("modules.dep", path)

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return DepMapParser.parse_lines(f)
        except OSError as e:
            raise MissingInputError("readable modules.dep", f"{path} ({e.strerror})")
        except UnicodeDecodeError as e:
            raise MalformedInputError("modules.dep", path, e.reason)


class BuiltinModuleParser:
    """Parser for modules.builtin."""

    @staticmethod
    def parse(path: str) -> Dict[str, str]:
        """
        Extract builtin modules from a modules.builtin file.

        A missing file is not fatal: the kernel may simply have no builtin
        module list, in which case nothing is treated as builtin.

        Args:
            path: Path to modules.builtin

        Returns:
            Dict[str, str]: Module name (``ext4``) -> listed path
        """
        builtins: Dict[str, str] = {}

        if not os.path.isfile(path):
            print(f"Warning: {path} not found", file=sys.stderr)
            return builtins

        try:
            with open(path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if line:
                        # "kernel/fs/ext4/ext4.ko" -> "ext4"
                        builtins.setdefault(module_name(line), line)
        except (OSError, UnicodeDecodeError) as e:
            print(f"Warning: Error reading {path}: {e}", file=sys.stderr)

        return builtins
