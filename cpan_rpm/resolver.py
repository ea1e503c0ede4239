"""
Recursive dependency resolution and build orchestration.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional

from .config import BuildConfig, Override
from .corelist import CoreBaseline
from .descriptor import DescriptorGenerator, archive_root, package_identifier
from .fetcher import FetchError
from .interfaces import BuildExecutor, ModuleProbe, RegistryClient, SourceFetcher
from .models import CONFLICTS, DEVELOP, SUGGESTS, DependencyEdge, Release
from .registry import RegistryError
from .repository import RepositoryScanner
from .state import BuildState, ModulePhaseMemo, ModuleRecord
from .versions import normalize_version, version_satisfied


logger = logging.getLogger(__name__)

RUNTIME_NAME = "perl"
MAX_DEPTH = 100


def _append(lines: List[str], line: str) -> None:
    if line not in lines:
        lines.append(line)


class DependencyResolver:
    """Resolve a distribution's dependency graph and build what is missing.

    Resolution is depth first: every dependency that needs a build is built
    (or has failed) before the distribution that needs it. All run state
    lives in the ``BuildState`` passed to ``resolve``; the resolver itself
    only holds collaborators and read-only configuration.
    """

    def __init__(
        self,
        config: BuildConfig,
        registry: RegistryClient,
        baseline: CoreBaseline,
        repository: RepositoryScanner,
        generator: DescriptorGenerator,
        executor: BuildExecutor,
        fetcher: SourceFetcher,
        probe: Optional[ModuleProbe] = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.baseline = baseline
        self.repository = repository
        self.generator = generator
        self.executor = executor
        self.fetcher = fetcher
        self.probe = probe

    def identifier(self, distribution: str) -> str:
        override = self.config.override_for(distribution)
        return package_identifier(
            self.config, override.name or distribution, override.no_system_prefix
        )

    def resolve(self, distribution: str, state: BuildState) -> bool:
        """Resolve and, if needed, build one distribution.

        A distribution seen earlier in the run counts as satisfied, including
        one still being resolved further up the stack; its failure, if any, is
        already on the failed list.
        """
        if not state.visit(distribution):
            logger.debug("%s already handled in this run", distribution)
            return True

        if state.depth >= MAX_DEPTH:
            logger.error("Dependency chain too deep at %s", distribution)
            state.mark_failed(distribution)
            return False

        state.depth += 1
        try:
            success = self._resolve(distribution, state)
        finally:
            state.depth -= 1

        if not success:
            state.mark_failed(distribution)
        return success

    def _apply_override(self, release: Release, override: Override) -> Release:
        return dataclasses.replace(
            release,
            version=normalize_version(release.version) or release.version,
            download_url=override.download_url or release.download_url,
            archive=override.archive or release.archive,
            package_name=override.name or release.package_name,
            no_system_prefix=override.no_system_prefix or release.no_system_prefix,
        )

    def _resolve(self, distribution: str, state: BuildState) -> bool:
        try:
            release = self.registry.get_release(distribution)
        except RegistryError as e:
            logger.error("Cannot fetch release metadata for %s: %s", distribution, e)
            return False

        override = self.config.override_for(distribution)
        release = self._apply_override(release, override)
        state.versions[distribution] = release.version

        identifier = package_identifier(
            self.config, release.package_name or distribution, release.no_system_prefix
        )
        if self.repository.is_built(identifier, release.version):
            logger.info("%s-%s is already in the repository", identifier, release.version)
            state.skipped.append(distribution)
            return True

        requires = list(override.requires)
        build_requires = list(override.build_requires)
        install = list(override.build_requires)
        memo = state.memo_for(distribution)

        failures = []
        for edge in list(override.missing) + list(release.dependencies):
            problem = self._resolve_edge(
                distribution, edge, override, memo, requires, build_requires, state
            )
            if problem:
                failures.append(problem)

        if failures:
            logger.error(
                "Not building %s, unresolved dependencies:\n  %s",
                distribution,
                "\n  ".join(failures),
            )
            return False

        return self._build(release, override, requires, build_requires, install, state)

    def _skip_edge(self, edge: DependencyEdge, override: Override) -> bool:
        if edge.is_runtime and edge.module in override.exclude_requires:
            return True
        if not edge.is_runtime and edge.module in override.exclude_build_requires:
            return True
        if edge.phase == DEVELOP or edge.relationship == CONFLICTS:
            return True
        return edge.module == RUNTIME_NAME

    def _add_requirement(
        self,
        edge: DependencyEdge,
        record: ModuleRecord,
        requires: List[str],
        build_requires: List[str],
    ) -> None:
        if edge.relationship == SUGGESTS:
            return
        if record.core:
            line = self.generator.capability(edge.module, edge.version)
        elif edge.is_runtime and record.owner_version:
            line = f"{self.identifier(record.owner)} >= {record.owner_version}"
        else:
            line = self.identifier(record.owner)
        _append(requires if edge.is_runtime else build_requires, line)

    def _loaded_by_runtime(self, distribution: str, edge: DependencyEdge, owner: str) -> bool:
        if self.probe is None or not self.probe.has_module(edge.module, edge.version):
            return False
        logger.warning(
            "%s: %s failed to build but perl already loads %s %s",
            distribution, owner, edge.module, edge.version or "",
        )
        return True

    def _revisit_module(
        self,
        distribution: str,
        edge: DependencyEdge,
        record: ModuleRecord,
        requires: List[str],
        build_requires: List[str],
    ) -> Optional[str]:
        """Handle a module already recorded for this distribution.

        Suggestions never satisfy a hard requirement in the same phase: the
        first hard edge for a phase adds its line, or reports the failure
        when the module could not be provided.
        """
        hard = edge.relationship != SUGGESTS
        if record.self_owned:
            record.phases.add(edge.phase)
            return None
        if edge.phase in (record.hard_phases if hard else record.phases):
            return None

        suggested_only = not record.hard_phases
        record.phases.add(edge.phase)
        if hard:
            record.hard_phases.add(edge.phase)

        if record.failed:
            if not hard:
                return None
            if not (
                suggested_only
                and record.owner is not None
                and self._loaded_by_runtime(distribution, edge, record.owner)
            ):
                return f"{edge.module} ({edge.phase}): could not be satisfied"
            record.failed = False
            record.owner = None

        self._add_requirement(edge, record, requires, build_requires)
        return None

    def _resolve_edge(
        self,
        distribution: str,
        edge: DependencyEdge,
        override: Override,
        memo: ModulePhaseMemo,
        requires: List[str],
        build_requires: List[str],
        state: BuildState,
    ) -> Optional[str]:
        """Satisfy one dependency edge; return a failure message or None."""
        if self._skip_edge(edge, override):
            return None

        module = edge.module
        hard = edge.relationship != SUGGESTS
        record = memo.get(module)
        if record is not None:
            return self._revisit_module(distribution, edge, record, requires, build_requires)

        if module in self.baseline and version_satisfied(edge.version, self.baseline.lookup(module)):
            logger.debug("%s: %s is provided by perl %s", distribution, module, self.baseline.perl_version)
            record = memo.record(module, edge.phase, hard=hard)
            self._add_requirement(edge, record, requires, build_requires)
            return None

        try:
            owner = self.registry.get_module_owner(module)
        except RegistryError as e:
            memo.record(module, edge.phase, failed=True, hard=hard)
            if not hard:
                logger.warning("%s: ignoring suggested %s: %s", distribution, module, e)
                return None
            return f"{module} ({edge.phase}): {e}"

        if owner == RUNTIME_NAME:
            record = memo.record(module, edge.phase, hard=hard)
            self._add_requirement(edge, record, requires, build_requires)
            return None
        if owner == distribution:
            memo.record(module, edge.phase, owner=owner, self_owned=True, hard=hard)
            return None

        if not self.resolve(owner, state):
            state.mark_failed(owner)
            if not hard:
                logger.warning("%s: suggested %s (%s) failed to build", distribution, module, owner)
                memo.record(module, edge.phase, owner=owner, failed=True, hard=False)
                return None
            if self._loaded_by_runtime(distribution, edge, owner):
                record = memo.record(module, edge.phase)
                self._add_requirement(edge, record, requires, build_requires)
                return None
            memo.record(module, edge.phase, owner=owner, failed=True)
            return f"{module} ({edge.phase}): {owner} failed to build"

        record = memo.record(
            module, edge.phase, owner=owner, owner_version=state.versions.get(owner), hard=hard
        )
        self._add_requirement(edge, record, requires, build_requires)
        return None

    def _build(
        self,
        release: Release,
        override: Override,
        requires: List[str],
        build_requires: List[str],
        install: List[str],
        state: BuildState,
    ) -> bool:
        distribution = release.distribution
        try:
            archive = self.fetcher.fetch(release)
            contents = self.fetcher.list_contents(archive)
        except FetchError as e:
            logger.error("Cannot get sources for %s: %s", distribution, e)
            return False

        descriptor = self.generator.describe(release, override, contents, requires, build_requires)
        if descriptor is None:
            return False
        spec_path = self.generator.write(descriptor, archive_root(contents, release.name))
        if spec_path is None:
            return False

        state.attempts += 1
        result = self.executor.build(descriptor, spec_path, install)
        if not result.success:
            logger.error("Build of %s failed: %s", distribution, result.reason)
            return False

        logger.info(
            "Built %s-%s (%d artifacts)", descriptor.name, descriptor.version, len(result.artifacts)
        )
        state.built.append(distribution)
        return True
