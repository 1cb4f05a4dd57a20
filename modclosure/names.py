"""
Canonical module identity.

Every module reference handled by the resolver (a bare name, a path relative
to the module tree, with or without a compression suffix) is reduced to a
single canonical identity: a relative path ending in a plain ``.ko``.
"""

import posixpath
from typing import List

MODULE_SUFFIX = '.ko'

# Probe order for compressed variants on disk.
COMPRESSION_SUFFIXES = ('.zst', '.xz', '.gz')


def strip_compression(ref: str) -> str:
    """Remove any trailing compression suffixes from a module reference."""
    stripped = True
    while stripped:
        stripped = False
        for suffix in COMPRESSION_SUFFIXES:
            if ref.endswith(suffix) and len(ref) > len(suffix):
                ref = ref[:-len(suffix)]
                stripped = True
    return ref


def normalize(ref: str) -> str:
    """
    Reduce a module reference to its canonical identity.

    Args:
        ref: Module reference (``e1000e``, ``e1000e.ko.zst``,
            ``kernel/drivers/net/e1000e/e1000e.ko`` ...)

    Returns:
        str: Relative path with a plain ``.ko`` suffix
    """
    ref = ref.strip()
    while ref.startswith('./'):
        ref = ref[2:]
    ref = strip_compression(ref)
    if not ref.endswith(MODULE_SUFFIX):
        ref += MODULE_SUFFIX
    return ref


def basename(ref: str) -> str:
    return posixpath.basename(normalize(ref))


def module_name(ref: str) -> str:
    """Return the bare module name (``e1000e``) of a reference."""
    return basename(ref)[:-len(MODULE_SUFFIX)]


def compressed_variants(rel: str) -> List[str]:
    """Return the on-disk spellings a normalized path may take."""
    return [rel] + [rel + suffix for suffix in COMPRESSION_SUFFIXES]


def is_module_file(rel: str) -> bool:
    """True for ``*.ko`` files and their compressed variants."""
    return strip_compression(rel).endswith(MODULE_SUFFIX)


def relative_to_owner(owner: str, dep: str) -> str:
    """
    Resolve a dependency path listed on an owner's modules.dep line.

    Bare file names are taken relative to the directory of the owning module;
    anything containing a slash is already relative to the tree root.
    """
    if '/' in dep:
        return dep[2:] if dep.startswith('./') else dep
    directory = posixpath.dirname(owner)
    return posixpath.join(directory, dep) if directory else dep
