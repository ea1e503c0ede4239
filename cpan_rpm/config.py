"""
Build configuration and per-distribution overrides.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from .models import PHASES, RELATIONSHIPS, REQUIRES, RUNTIME, DependencyEdge


logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://fastapi.metacpan.org/v1"
DEFAULT_PERL_VERSION = "5.36.0"


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


def _parse_edge(value: Any, distribution: str) -> DependencyEdge:
    if isinstance(value, str):
        return DependencyEdge(module=value)
    if not isinstance(value, dict) or "module" not in value:
        raise ConfigError(f"{distribution}: invalid missing dependency {value!r}")
    phase = value.get("phase", RUNTIME)
    relationship = value.get("relationship", REQUIRES)
    if phase not in PHASES:
        raise ConfigError(f"{distribution}: unknown phase {phase!r}")
    if relationship not in RELATIONSHIPS:
        raise ConfigError(f"{distribution}: unknown relationship {relationship!r}")
    version = value.get("version")
    return DependencyEdge(
        module=value["module"],
        version=str(version) if version not in (None, "", "0", 0) else None,
        phase=phase,
        relationship=relationship,
    )


@dataclass(frozen=True)
class Override:
    """User-supplied data merged over registry metadata for one distribution.

    Every field is optional; the defaults leave the registry data untouched.
    """

    name: Optional[str] = None
    download_url: Optional[str] = None
    archive: Optional[str] = None
    requires: List[str] = field(default_factory=list)
    build_requires: List[str] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    cpan_conflicts: List[str] = field(default_factory=list)
    exclude_requires: FrozenSet[str] = frozenset()
    exclude_build_requires: FrozenSet[str] = frozenset()
    missing: List[DependencyEdge] = field(default_factory=list)
    patches: List[str] = field(default_factory=list)
    no_system_prefix: bool = False

    @classmethod
    def from_dict(cls, distribution: str, data: Dict[str, Any]) -> "Override":
        if not isinstance(data, dict):
            raise ConfigError(f"{distribution}: override must be an object")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(
                f"{distribution}: unknown override keys {', '.join(sorted(unknown))}"
            )
        values = dict(data)
        for key in ("exclude_requires", "exclude_build_requires"):
            if key in values:
                values[key] = frozenset(values[key])
        if "missing" in values:
            values["missing"] = [_parse_edge(v, distribution) for v in values["missing"]]
        for key in ("requires", "build_requires", "provides", "conflicts", "cpan_conflicts", "patches"):
            if key in values and not isinstance(values[key], list):
                raise ConfigError(f"{distribution}: {key} must be a list")
        values["no_system_prefix"] = bool(values.get("no_system_prefix", False))
        return cls(**values)


@dataclass
class BuildConfig:
    """Settings for one build run.

    ``system_perl`` marks the target perl as the distribution's default perl,
    which decides the package name namespace (see ``package_namespace``).
    ``core_baseline`` is a JSON file of bundled modules; when unset the table
    is read from the target perl's Module::CoreList.
    """

    perl_version: str = DEFAULT_PERL_VERSION
    perl: str = "/usr/bin/perl"
    system_perl: bool = True
    runtime_package: str = "perl"
    registry_url: str = DEFAULT_REGISTRY_URL
    repository: Path = Path("./repo")
    topdir: Path = Path("./rpmbuild")
    sources_dir: Optional[Path] = None
    specs_dir: Path = Path("./specs")
    core_baseline: Optional[Path] = None
    package_manager: List[str] = field(default_factory=lambda: ["dnf", "install", "-y"])
    fail_fast: bool = False
    catalog: List[str] = field(default_factory=list)
    overrides: Dict[str, Override] = field(default_factory=dict)

    @property
    def package_namespace(self) -> str:
        if self.system_perl:
            return "perl"
        major, minor = (self.perl_version.lstrip("v").split(".") + ["0", "0"])[:2]
        return f"perl{major}{minor}"

    @property
    def source_dir(self) -> Path:
        return self.sources_dir or self.topdir / "SOURCES"

    def override_for(self, distribution: str) -> Override:
        return self.overrides.get(distribution, Override())


_PATH_KEYS = ("repository", "topdir", "sources_dir", "specs_dir", "core_baseline")


def load_config(path: Optional[Path] = None) -> BuildConfig:
    """Load a BuildConfig from a JSON file; no path gives the defaults."""
    if path is None:
        return BuildConfig()

    path = Path(path)
    logger.info("Loading configuration from %s", path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read configuration {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be an object")

    known = {f.name for f in fields(BuildConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"{path}: unknown keys {', '.join(sorted(unknown))}")

    values = dict(data)
    for key in _PATH_KEYS:
        if values.get(key) is not None:
            values[key] = Path(values[key])
    overrides = data.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise ConfigError(f"{path}: overrides must be an object")
    values["overrides"] = {
        name: Override.from_dict(name, override or {})
        for name, override in overrides.items()
    }
    return BuildConfig(**values)
