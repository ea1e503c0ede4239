"""
Target perl: live module probes and the bootstrap phase.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from typing import Callable, List, Optional

from .config import BuildConfig
from .versions import normalize_version, version_key


logger = logging.getLogger(__name__)

_MODULE_RE = re.compile(r"^[A-Za-z_]\w*(?:::\w+)*$")


class RuntimeBootstrapError(RuntimeError):
    """The target perl is not available and could not be installed."""


class RuntimeProbe:
    """Ask the target perl whether it can already load a module."""

    def __init__(self, perl: str, timeout: float = 30) -> None:
        self.perl = perl
        self.timeout = timeout

    def has_module(self, module: str, version: Optional[str] = None) -> bool:
        if not _MODULE_RE.match(module):
            logger.warning("Refusing to probe invalid module name %r", module)
            return False
        statement = f"use {module}"
        version = normalize_version(version)
        if version is not None:
            if version_key(version) is None:
                return False
            statement += f" {version}"
        try:
            result = subprocess.run(
                [self.perl, "-e", f"{statement} ()"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            logger.warning("Probe for %s failed: %s", module, e)
            return False
        return result.returncode == 0

    def version(self) -> Optional[str]:
        try:
            result = subprocess.run(
                [self.perl, "-e", 'print sprintf("%vd", $^V)'],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None


def _perl_exists(perl: str) -> bool:
    return shutil.which(perl) is not None


def bootstrap_runtime(
    config: BuildConfig,
    install: Optional[Callable[[List[str]], bool]] = None,
) -> RuntimeProbe:
    """Make sure the target perl exists before any resolution starts.

    A missing perl is installed through ``install`` (the system package
    manager) when given. Failure here is fatal to the whole run.
    """
    if not _perl_exists(config.perl):
        if install is None:
            raise RuntimeBootstrapError(f"perl not found at {config.perl}")
        logger.info("Installing runtime package %s", config.runtime_package)
        if not install([config.runtime_package]) or not _perl_exists(config.perl):
            raise RuntimeBootstrapError(
                f"Could not install {config.runtime_package} to provide {config.perl}"
            )

    probe = RuntimeProbe(config.perl)
    found = probe.version()
    if found is None:
        raise RuntimeBootstrapError(f"{config.perl} does not run")
    if version_key(found) != version_key(f"v{config.perl_version.lstrip('v')}"):
        logger.warning(
            "%s is perl %s but packages target perl %s", config.perl, found, config.perl_version
        )
    logger.info("Using perl %s at %s", found, config.perl)
    return probe
