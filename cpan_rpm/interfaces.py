"""
Interfaces for the collaborators the dependency resolver drives.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol

from .models import BuildResult, PackageDescriptor, ProvidedModule, Release


class RegistryClient(Protocol):
    """Look up releases and module ownership in the module registry."""

    def get_release(self, distribution: str) -> Release:
        ...

    def get_module_owner(self, module: str) -> str:
        ...

    def search_modules(self, release_name: str, author: str) -> List[ProvidedModule]:
        ...


class BuildExecutor(Protocol):
    """Turn a package descriptor into installed artifacts in the repository."""

    def build(
        self, descriptor: PackageDescriptor, spec_path: Path, install: List[str]
    ) -> BuildResult:
        ...


class SourceFetcher(Protocol):
    """Download source archives and list their contents."""

    def fetch(self, release: Release) -> Path:
        ...

    def list_contents(self, archive: Path) -> List[str]:
        ...


class ModuleProbe(Protocol):
    """Check whether the target runtime can already load a module."""

    def has_module(self, module: str, version: Optional[str] = None) -> bool:
        ...
