"""
Package descriptor (RPM spec) generation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .config import BuildConfig, Override
from .interfaces import RegistryClient
from .licenses import license_label
from .models import MAKEMAKER, MODULE_BUILD, PackageDescriptor, ProvidedModule, Release
from .registry import RegistryError
from .versions import normalize_version


logger = logging.getLogger(__name__)

COMPILED_EXTENSIONS = (".xs", ".c", ".h", ".cc", ".cpp", ".swg", ".inl")

SPEC_TEMPLATE = """\
%global __perl {perl}

Name:           {name}
Version:        {version}
Release:        {release}%{{?dist}}
Summary:        {summary}
License:        {license}
URL:            {url}
Source0:        {source}
{patch_lines}{arch_line}AutoReqProv:    no
{build_requires}{requires}{provides}{conflicts}
%description
{summary}

%prep
%setup -q -n {source_dir}
{apply_patches}
{recipe}
%files
{files}
"""

MAKEMAKER_RECIPE = """\
%build
%{__perl} Makefile.PL INSTALLDIRS=vendor NO_PACKLIST=1 NO_PERLLOCAL=1
make %{?_smp_mflags}

%install
make pure_install DESTDIR=%{buildroot}
find %{buildroot} -type f -name '*.bs' -size 0 -delete

%check
make test
"""

MODULE_BUILD_RECIPE = """\
%build
%{__perl} Build.PL --installdirs=vendor
./Build

%install
./Build pure_install --destdir=%{buildroot} --create_packlist=0

%check
./Build test
"""


def package_identifier(config: BuildConfig, name: str, no_system_prefix: bool = False) -> str:
    """Package name for a distribution under the configured namespace.

    Only packages built for the system perl may opt out of the prefix.
    """
    if config.system_perl and no_system_prefix:
        return name
    return f"{config.package_namespace}-{name}"


def inspect_archive(contents: Iterable[str]) -> Tuple[bool, str]:
    """Return ``(noarch, build_variant)`` for an archive's member names."""
    noarch = True
    top_level = set()
    for entry in contents:
        parts = [part for part in entry.split("/") if part and part != "."]
        if not parts:
            continue
        if parts[-1].lower().endswith(COMPILED_EXTENSIONS):
            noarch = False
        if len(parts) <= 2:
            top_level.add(parts[-1])
    if "Build.PL" in top_level and "Makefile.PL" not in top_level:
        return noarch, MODULE_BUILD
    return noarch, MAKEMAKER


def archive_root(contents: Iterable[str], default: str) -> str:
    """Name of the directory the archive unpacks into."""
    for entry in contents:
        parts = [part for part in entry.split("/") if part and part != "."]
        if len(parts) > 1 or (parts and entry.endswith("/")):
            return parts[0]
    return default


def _dedupe_modules(modules: Iterable[ProvidedModule]) -> List[ProvidedModule]:
    seen = {}
    for module in modules:
        seen.setdefault(module.name, module)
    return list(seen.values())


class DescriptorGenerator:
    """Build package descriptors and write them out as spec files."""

    def __init__(self, config: BuildConfig, registry: RegistryClient) -> None:
        self.config = config
        self.registry = registry

    def capability(self, module: str, version: Optional[str] = None, op: str = ">=") -> str:
        name = f"{self.config.package_namespace}({module})"
        version = normalize_version(version)
        return f"{name} {op} {version}" if version else name

    def provided_modules(self, release: Release) -> List[ProvidedModule]:
        if release.provides:
            return _dedupe_modules(
                ProvidedModule(m.name, normalize_version(m.version)) for m in release.provides
            )
        try:
            found = self.registry.search_modules(release.name, release.author)
        except RegistryError as e:
            logger.warning("Module search for %s failed: %s", release.name, e)
            return []
        return _dedupe_modules(found)

    def describe(
        self,
        release: Release,
        override: Override,
        archive_contents: Iterable[str],
        requires: Optional[List[str]] = None,
        build_requires: Optional[List[str]] = None,
    ) -> Optional[PackageDescriptor]:
        noarch, variant = inspect_archive(archive_contents)

        modules = self.provided_modules(release)
        provides = list(override.provides)
        provides.extend(self.capability(m.name, m.version, "=") for m in modules)
        if not provides:
            logger.error("Cannot determine what %s provides", release.distribution)
            return None

        conflicts = list(override.conflicts)
        conflicts.extend(self.capability(module) for module in override.cpan_conflicts)

        name = package_identifier(
            self.config,
            override.name or release.package_name or release.distribution,
            override.no_system_prefix or release.no_system_prefix,
        )
        return PackageDescriptor(
            name=name,
            distribution=release.distribution,
            version=release.version,
            license=license_label(release.license),
            summary=" ".join((release.abstract or release.distribution).split()),
            url=f"https://metacpan.org/release/{release.distribution}",
            source=release.download_url,
            patches=list(override.patches),
            build_requires=list(build_requires or []),
            requires=list(requires or []),
            provides=provides,
            conflicts=conflicts,
            noarch=noarch,
            build_variant=variant,
        )

    def render(self, descriptor: PackageDescriptor, source_dir: str) -> str:
        def tag_lines(tag: str, values: List[str]) -> str:
            return "".join(f"{tag + ':':<16}{value}\n" for value in values)

        patch_lines = "".join(
            f"{f'Patch{index}:':<16}{Path(patch).name}\n"
            for index, patch in enumerate(descriptor.patches)
        )
        apply_patches = "".join(
            f"%patch -P{index} -p1\n" for index in range(len(descriptor.patches))
        )
        if descriptor.noarch:
            arch_line = f"{'BuildArch:':<16}noarch\n"
            files = "%{perl_vendorlib}/*\n%{_mandir}/man3/*"
        else:
            arch_line = ""
            files = "%{perl_vendorarch}/*\n%{_mandir}/man3/*"
        recipe = MODULE_BUILD_RECIPE if descriptor.build_variant == MODULE_BUILD else MAKEMAKER_RECIPE
        return SPEC_TEMPLATE.format(
            perl=self.config.perl,
            name=descriptor.name,
            version=descriptor.version,
            release=descriptor.release,
            summary=descriptor.summary,
            license=descriptor.license,
            url=descriptor.url,
            source=descriptor.source,
            patch_lines=patch_lines,
            arch_line=arch_line,
            build_requires=tag_lines("BuildRequires", descriptor.build_requires),
            requires=tag_lines("Requires", descriptor.requires),
            provides=tag_lines("Provides", descriptor.provides),
            conflicts=tag_lines("Conflicts", descriptor.conflicts),
            source_dir=source_dir,
            apply_patches=apply_patches,
            recipe=recipe,
            files=files,
        )

    def hand_authored_path(self, descriptor: PackageDescriptor) -> Path:
        return self.config.specs_dir / f"{descriptor.name}.spec"

    def write(self, descriptor: PackageDescriptor, source_dir: str) -> Optional[Path]:
        """Write the spec unless a hand-authored one exists; return its path."""
        hand_authored = self.hand_authored_path(descriptor)
        if hand_authored.is_file():
            logger.info("Using hand-authored spec %s", hand_authored)
            return hand_authored

        target = self.config.topdir / "SPECS" / f"{descriptor.name}.spec"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self.render(descriptor, source_dir), encoding="utf-8")
        except OSError as e:
            logger.error("Cannot write spec for %s: %s", descriptor.name, e)
            return None
        logger.debug("Wrote %s", target)
        return target
