"""
Build executor driving rpmbuild, rpm and the system package manager.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .config import BuildConfig
from .models import BuildResult, PackageDescriptor
from .repository import RepositoryScanner


logger = logging.getLogger(__name__)

# Distributions whose packages ship files that overlap with the perl
# package itself; they are installed with --replacefiles.
FORCE_OVERWRITE = frozenset({
    "ExtUtils-MakeMaker",
    "Module-Build",
    "Test-Simple",
    "podlators",
})

_WROTE_RE = re.compile(r"^Wrote:\s+(\S+\.rpm)\s*$", re.MULTILINE)


class RpmBuildExecutor:
    """Build one package and install it so later builds can use it."""

    def __init__(
        self,
        config: BuildConfig,
        repository: RepositoryScanner,
        timeout: Optional[float] = 3600,
    ) -> None:
        self.config = config
        self.repository = repository
        self.timeout = timeout

    def _run(self, cmd: List[str]) -> Optional[subprocess.CompletedProcess]:
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            logger.error("%s failed: %s", cmd[0], e)
            return None
        if result.returncode != 0:
            logger.debug("%s stderr:\n%s", cmd[0], result.stderr)
        return result

    def install_packages(self, packages: List[str]) -> bool:
        """Install packages through the system package manager."""
        if not packages:
            return True
        logger.info("Installing %s", ", ".join(packages))
        result = self._run(list(self.config.package_manager) + list(packages))
        return result is not None and result.returncode == 0

    def _stage_patches(self, descriptor: PackageDescriptor) -> Optional[str]:
        sources = self.config.topdir / "SOURCES"
        for patch in descriptor.patches:
            path = Path(patch)
            if not path.is_absolute():
                path = self.config.specs_dir / path
            try:
                sources.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, sources / path.name)
            except OSError as e:
                return f"cannot stage patch {patch}: {e}"
        return None

    def build(
        self, descriptor: PackageDescriptor, spec_path: Path, install: List[str]
    ) -> BuildResult:
        if not self.install_packages(install):
            return BuildResult(False, reason="installing build dependencies failed")

        problem = self._stage_patches(descriptor)
        if problem:
            return BuildResult(False, reason=problem)

        logger.info("Building %s-%s", descriptor.name, descriptor.version)
        result = self._run([
            "rpmbuild", "-ba",
            "--define", f"_topdir {self.config.topdir.resolve()}",
            str(spec_path),
        ])
        if result is None or result.returncode != 0:
            tail = result.stderr.strip().splitlines()[-1:] if result is not None else []
            return BuildResult(False, reason=f"rpmbuild failed {' '.join(tail)}".strip())

        produced = [Path(path) for path in _WROTE_RE.findall(result.stdout)]
        if not produced:
            return BuildResult(False, reason="rpmbuild reported no artifacts")

        try:
            artifacts = self.repository.add(produced)
        except OSError as e:
            return BuildResult(False, reason=f"cannot move artifacts into repository: {e}")

        binaries = [str(path) for path in artifacts if not path.name.endswith(".src.rpm")]
        cmd = ["rpm", "-Uvh"]
        if descriptor.distribution in FORCE_OVERWRITE:
            cmd.append("--replacefiles")
        install_result = self._run(cmd + binaries)
        if install_result is None or install_result.returncode != 0:
            logger.error("Installing %s failed, removing its artifacts", descriptor.name)
            self.repository.remove(artifacts)
            return BuildResult(False, reason="installing built packages failed")

        return BuildResult(True, artifacts=artifacts)
