"""Shared fakes and fixtures for resolver tests."""

from pathlib import Path

import pytest

from cpan_rpm.config import BuildConfig
from cpan_rpm.corelist import CoreBaseline
from cpan_rpm.descriptor import DescriptorGenerator
from cpan_rpm.models import BuildResult, ProvidedModule, Release
from cpan_rpm.registry import RegistryError
from cpan_rpm.repository import RepositoryScanner
from cpan_rpm.resolver import DependencyResolver


class FakeRegistry:
    def __init__(self, releases, owners, searches=None):
        self.releases = {release.distribution: release for release in releases}
        self.owners = dict(owners)
        self.searches = searches or {}
        self.calls = []

    def get_release(self, distribution):
        self.calls.append(("release", distribution))
        if distribution not in self.releases:
            raise RegistryError(404, "Not Found")
        return self.releases[distribution]

    def get_module_owner(self, module):
        self.calls.append(("owner", module))
        if module not in self.owners:
            raise RegistryError(404, "Not Found")
        return self.owners[module]

    def search_modules(self, release_name, author):
        self.calls.append(("search", release_name))
        if release_name not in self.searches:
            raise RegistryError(500, "Internal Server Error")
        return self.searches[release_name]


class FakeExecutor:
    """Pretends to build; writes an artifact into the repository on success."""

    def __init__(self, repository, failing=()):
        self.repository = Path(repository)
        self.failing = set(failing)
        self.builds = []
        self.installs = []

    def build(self, descriptor, spec_path, install):
        self.builds.append(descriptor)
        self.installs.append(list(install))
        if descriptor.distribution in self.failing:
            return BuildResult(False, reason="make test failed")
        self.repository.mkdir(parents=True, exist_ok=True)
        artifact = self.repository / f"{descriptor.name}-{descriptor.version}-1.noarch.rpm"
        artifact.touch()
        return BuildResult(True, artifacts=[artifact])

    @property
    def built(self):
        return [descriptor.distribution for descriptor in self.builds]

    def descriptor_for(self, distribution):
        for descriptor in self.builds:
            if descriptor.distribution == distribution:
                return descriptor
        raise KeyError(distribution)


class FakeFetcher:
    def fetch(self, release):
        return Path(release.archive)

    def list_contents(self, archive):
        root = archive.name[: -len(".tar.gz")]
        return [f"{root}/", f"{root}/Makefile.PL", f"{root}/lib/Module.pm"]


class FakeProbe:
    def __init__(self, available=()):
        self.available = set(available)
        self.calls = []

    def has_module(self, module, version=None):
        self.calls.append((module, version))
        return module in self.available


def _make_release(distribution, version="1.0", deps=(), provides=None, **kwargs):
    if provides is None:
        provides = [ProvidedModule(distribution.replace("-", "::"), version)]
    return Release(
        distribution=distribution,
        name=f"{distribution}-{version}",
        version=version,
        archive=f"{distribution}-{version}.tar.gz",
        download_url=f"https://cpan.example.org/{distribution}-{version}.tar.gz",
        license=["perl_5"],
        abstract=f"{distribution} for tests",
        author="TESTER",
        provides=provides,
        dependencies=list(deps),
        **kwargs,
    )


class World:
    """A resolver wired to fakes, plus handles on the fakes."""

    def __init__(self, tmp_path, releases, owners, baseline=None, failing=(),
                 available=(), overrides=None, searches=None, **config):
        self.config = BuildConfig(
            repository=tmp_path / "repo",
            topdir=tmp_path / "rpmbuild",
            specs_dir=tmp_path / "specs",
            overrides=overrides or {},
            **config,
        )
        self.registry = FakeRegistry(releases, owners, searches)
        self.executor = FakeExecutor(self.config.repository, failing)
        self.probe = FakeProbe(available)
        self.resolver = DependencyResolver(
            config=self.config,
            registry=self.registry,
            baseline=CoreBaseline("5.36.0", baseline or {}),
            repository=RepositoryScanner(self.config.repository),
            generator=DescriptorGenerator(self.config, self.registry),
            executor=self.executor,
            fetcher=FakeFetcher(),
            probe=self.probe,
        )

    def owner_lookups(self, module):
        return self.registry.calls.count(("owner", module))


@pytest.fixture
def make_release():
    return _make_release


@pytest.fixture
def make_world(tmp_path):
    def factory(releases, owners=None, **kwargs):
        return World(tmp_path, releases, owners or {}, **kwargs)
    return factory
