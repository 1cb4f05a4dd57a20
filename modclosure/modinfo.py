"""
Module metadata reader.

Reads the ``.modinfo`` ELF section of kernel module files, transparently
handling zstd, xz and gzip compressed modules.
"""

import gzip
import io
import lzma
import sys
from typing import Dict, List

import zstandard as zstd
from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile


class ModinfoReader:
    """Extract key=value metadata from kernel module files."""

    @staticmethod
    def load(file_path: str) -> bytes:
        """
        Return the uncompressed ELF image of a module file.

        Args:
            file_path: Path to a .ko, .ko.zst, .ko.xz or .ko.gz file
        """
        if file_path.endswith('.zst'):
            with open(file_path, 'rb') as compressed_file:
                dctx = zstd.ZstdDecompressor()
                with dctx.stream_reader(compressed_file) as reader:
                    return reader.read()
        if file_path.endswith('.xz'):
            with lzma.open(file_path, 'rb') as f:
                return f.read()
        if file_path.endswith('.gz'):
            with gzip.open(file_path, 'rb') as f:
                return f.read()
        with open(file_path, 'rb') as f:
            return f.read()

    @staticmethod
    def parse_section(data: bytes) -> Dict[str, List[str]]:
        """Split raw .modinfo section data into key -> values."""
        info: Dict[str, List[str]] = {}
        for entry in data.split(b'\x00'):
            if b'=' not in entry:
                continue
            key, value = entry.split(b'=', 1)
            info.setdefault(key.decode('utf-8', errors='ignore'), []).append(
                value.decode('utf-8', errors='ignore'))
        return info

    @staticmethod
    def read(file_path: str) -> Dict[str, List[str]]:
        """
        Read the .modinfo section of a module file.

        Args:
            file_path: Path to the module file

        Returns:
            Dict[str, List[str]]: Metadata, or an empty mapping if unreadable
        """
        try:
            image = ModinfoReader.load(file_path)
            elf = ELFFile(io.BytesIO(image))
            section = elf.get_section_by_name('.modinfo')
            if not section:
                return {}
            return ModinfoReader.parse_section(section.data())
        except (OSError, EOFError, ELFError, lzma.LZMAError, zstd.ZstdError) as e:
            print(f"Warning: Error reading module info from {file_path}: {e}", file=sys.stderr)
            return {}

    @staticmethod
    def description(file_path: str) -> str:
        values = ModinfoReader.read(file_path).get('description')
        return values[0] if values else ""
