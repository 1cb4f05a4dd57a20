"""
Module Closure Package

Decides which kernel modules go into an initramfs and which into the
installable payload: seed closures over modules.dep, safe all-or-nothing
exclusion, and cascade pruning of modules depending on excluded ones.
"""

from .models import Module, SeedResolution, Closure, ProtectedSet, ExcludeResolution, PayloadResolution
from .errors import (
    ResolverError, MissingInputError, MalformedInputError, ExcludeConflictError, EmptyPayloadError
)
from .names import normalize
from .index import DependencyIndex
from .parsers import ListFileParser, DepMapParser, BuiltinModuleParser
from .tree import ModuleTree, locate_module_dir
from .seeds import SeedResolver
from .closure import ClosureEngine
from .excludes import ExcludeLinter
from .payload import PayloadResolver
from .annotations import Annotator
from .modinfo import ModinfoReader
from .formatters import ListFormatter, JSONFormatter, CSVFormatter
from .writer import ArtifactWriter
from .resolver import ModuleResolver, ResolutionReport

__version__ = "1.0.0"

__all__ = [
    "Module",
    "SeedResolution",
    "Closure",
    "ProtectedSet",
    "ExcludeResolution",
    "PayloadResolution",
    "ResolverError",
    "MissingInputError",
    "MalformedInputError",
    "ExcludeConflictError",
    "EmptyPayloadError",
    "normalize",
    "DependencyIndex",
    "ListFileParser",
    "DepMapParser",
    "BuiltinModuleParser",
    "ModuleTree",
    "locate_module_dir",
    "SeedResolver",
    "ClosureEngine",
    "ExcludeLinter",
    "PayloadResolver",
    "Annotator",
    "ModinfoReader",
    "ListFormatter",
    "JSONFormatter",
    "CSVFormatter",
    "ArtifactWriter",
    "ModuleResolver",
    "ResolutionReport"
]
