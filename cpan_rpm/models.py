"""
Core data models for dependency resolution and package builds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


RUNTIME = "runtime"
BUILD = "build"
TEST = "test"
CONFIGURE = "configure"
DEVELOP = "develop"

PHASES = (RUNTIME, BUILD, TEST, CONFIGURE, DEVELOP)

REQUIRES = "requires"
RECOMMENDS = "recommends"
SUGGESTS = "suggests"
CONFLICTS = "conflicts"

RELATIONSHIPS = (REQUIRES, RECOMMENDS, SUGGESTS, CONFLICTS)

MAKEMAKER = "makemaker"
MODULE_BUILD = "module_build"


@dataclass(frozen=True)
class DependencyEdge:
    """A dependency declared by a release on a module."""

    module: str
    version: Optional[str] = None
    phase: str = RUNTIME
    relationship: str = REQUIRES

    @property
    def is_runtime(self) -> bool:
        return self.phase == RUNTIME


@dataclass(frozen=True)
class ProvidedModule:
    """A module (with optional version) a release provides."""

    name: str
    version: Optional[str] = None


@dataclass
class Release:
    """Release metadata for one distribution as returned by the registry."""

    distribution: str
    name: str
    version: str
    archive: str = ""
    download_url: str = ""
    license: List[str] = field(default_factory=list)
    abstract: str = ""
    author: str = ""
    provides: List[ProvidedModule] = field(default_factory=list)
    dependencies: List[DependencyEdge] = field(default_factory=list)
    package_name: Optional[str] = None
    no_system_prefix: bool = False


@dataclass
class PackageDescriptor:
    """Everything the build executor needs to produce a package."""

    name: str
    distribution: str
    version: str
    license: str
    summary: str
    url: str
    source: str
    release: int = 1
    patches: List[str] = field(default_factory=list)
    build_requires: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    noarch: bool = True
    build_variant: str = MAKEMAKER


@dataclass
class BuildResult:
    """Outcome of one build executor invocation."""

    success: bool
    artifacts: List[Path] = field(default_factory=list)
    reason: Optional[str] = None
