"""
Run orchestration: bootstrap the runtime, then resolve the requested
distributions against one shared run state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from tqdm import tqdm

from .config import BuildConfig
from .corelist import CoreBaseline
from .descriptor import DescriptorGenerator
from .executor import RpmBuildExecutor
from .fetcher import ArchiveFetcher
from .registry import MetaCPANClient
from .repository import RepositoryScanner
from .resolver import DependencyResolver
from .runtime import bootstrap_runtime
from .state import BuildState


logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Aggregated outcome of one run."""

    requested: List[str] = field(default_factory=list)
    built: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    attempts: int = 0
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failed

    def status_of(self, distribution: str) -> str:
        if distribution in self.failed:
            return "failed"
        if distribution in self.built:
            return "built"
        if distribution in self.skipped:
            return "skipped"
        return "satisfied"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested": self.requested,
            "built": self.built,
            "skipped": self.skipped,
            "failed": self.failed,
            "attempts": self.attempts,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class BuildRunner:
    """Drive the resolver over a list of requested distributions."""

    def __init__(self, config: BuildConfig, resolver: DependencyResolver) -> None:
        self.config = config
        self.resolver = resolver

    @classmethod
    def from_config(cls, config: BuildConfig) -> "BuildRunner":
        """Wire the real collaborators; runs the runtime bootstrap phase first."""
        repository = RepositoryScanner(config.repository)
        executor = RpmBuildExecutor(config, repository)
        probe = bootstrap_runtime(config, install=executor.install_packages)

        if config.core_baseline is not None:
            baseline = CoreBaseline.from_json(config.core_baseline, config.perl_version)
        else:
            baseline = CoreBaseline.from_corelist(config.perl, config.perl_version)
        logger.info("Core baseline for perl %s has %d modules", config.perl_version, len(baseline))

        registry = MetaCPANClient(config.registry_url)
        resolver = DependencyResolver(
            config=config,
            registry=registry,
            baseline=baseline,
            repository=repository,
            generator=DescriptorGenerator(config, registry),
            executor=executor,
            fetcher=ArchiveFetcher(config.source_dir, session=registry.cache.session),
            probe=probe,
        )
        return cls(config, resolver)

    def run(
        self,
        distributions: Iterable[str],
        state: Optional[BuildState] = None,
        progress: bool = True,
    ) -> RunReport:
        state = state or BuildState()
        requested = list(dict.fromkeys(distributions))
        report = RunReport(requested=requested)
        started = time.monotonic()

        for distribution in tqdm(requested, desc="distributions", unit="dist", disable=not progress):
            if not self.resolver.resolve(distribution, state):
                logger.error("%s failed", distribution)
                if self.config.fail_fast:
                    logger.warning("Stopping after first failure")
                    break

        report.built = list(state.built)
        report.skipped = list(state.skipped)
        report.failed = list(state.failed)
        report.attempts = state.attempts
        report.elapsed_seconds = time.monotonic() - started
        return report
