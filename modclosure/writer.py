"""
Artifact writer.

Lists are computed fully in memory and then swapped into place, so a reader
never observes a partially written file.
"""

import os
import tempfile
from typing import Iterable, List, Mapping

from .formatters import ListFormatter


class ArtifactWriter:
    """Write newline-delimited artifacts into an output directory."""

    def __init__(self, out_dir: str, formatter: ListFormatter = None):
        self.out_dir = out_dir
        self.formatter = formatter or ListFormatter()

    def write_text(self, name: str, content: str) -> str:
        """
        Atomically replace out_dir/name with content.

        Returns:
            str: Path of the written file
        """
        os.makedirs(self.out_dir, exist_ok=True)
        path = os.path.join(self.out_dir, name)
        fd, temp_path = tempfile.mkstemp(prefix=f".{name}.", dir=self.out_dir)
        try:
            f = os.fdopen(fd, 'w', encoding='utf-8', newline='\n')
        except BaseException:
            os.close(fd)
            os.unlink(temp_path)
            raise
        try:
            with f:
                f.write(content)
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, path)
        except BaseException:
            os.unlink(temp_path)
            raise
        return path

    def write_list(self, name: str, lines: Iterable[str]) -> str:
        return self.write_text(name, self.formatter.format(lines))

    def write_all(self, artifacts: Mapping[str, Iterable[str]]) -> List[str]:
        """Write every name -> lines entry; returns the written paths."""
        return [self.write_list(name, lines) for name, lines in artifacts.items()]

    def remove(self, *names: str):
        """Delete artifacts left over from an earlier run."""
        for name in names:
            path = os.path.join(self.out_dir, name)
            if os.path.isfile(path):
                os.unlink(path)
