"""Tests for package descriptor generation."""

from pathlib import Path

from cpan_rpm.config import BuildConfig, Override
from cpan_rpm.descriptor import (
    DescriptorGenerator,
    archive_root,
    inspect_archive,
    package_identifier,
)
from cpan_rpm.models import MAKEMAKER, MODULE_BUILD, ProvidedModule, Release
from cpan_rpm.registry import RegistryError


class StubRegistry:
    def __init__(self, found=None):
        self.found = found
        self.calls = []

    def search_modules(self, release_name, author):
        self.calls.append((release_name, author))
        if self.found is None:
            raise RegistryError(503, "Service Unavailable")
        return self.found


def make_release(**kwargs):
    values = dict(
        distribution="Foo-Bar",
        name="Foo-Bar-1.2",
        version="1.2",
        archive="Foo-Bar-1.2.tar.gz",
        download_url="https://cpan.example.org/Foo-Bar-1.2.tar.gz",
        license=["perl_5"],
        abstract="Bars for\n foos",
        author="TESTER",
        provides=[ProvidedModule("Foo::Bar", "v1.2")],
    )
    values.update(kwargs)
    return Release(**values)


def make_generator(tmp_path, registry=None, **config):
    config = BuildConfig(topdir=tmp_path / "rpmbuild", specs_dir=tmp_path / "specs", **config)
    return DescriptorGenerator(config, registry or StubRegistry())


def test_inspect_archive_defaults_to_portable_makemaker():
    assert inspect_archive(["Foo-1.0/Makefile.PL", "Foo-1.0/lib/Foo.pm"]) == (True, MAKEMAKER)
    assert inspect_archive([]) == (True, MAKEMAKER)


def test_inspect_archive_detects_compiled_sources():
    noarch, _ = inspect_archive(["Foo-1.0/Makefile.PL", "Foo-1.0/Foo.xs"])
    assert noarch is False


def test_inspect_archive_selects_module_build_only_without_makefile_pl():
    assert inspect_archive(["Foo-1.0/Build.PL", "Foo-1.0/lib/Foo.pm"])[1] == MODULE_BUILD
    assert inspect_archive(["Foo-1.0/Build.PL", "Foo-1.0/Makefile.PL"])[1] == MAKEMAKER
    assert inspect_archive(["Foo-1.0/Makefile.PL", "Foo-1.0/inc/Build.PL"])[1] == MAKEMAKER


def test_archive_root():
    assert archive_root(["Foo-1.0/", "Foo-1.0/Makefile.PL"], "x") == "Foo-1.0"
    assert archive_root(["./Foo-1.0/Makefile.PL"], "x") == "Foo-1.0"
    assert archive_root(["Makefile.PL"], "Foo-1.0") == "Foo-1.0"


def test_package_identifier_prefix_rules():
    system = BuildConfig(system_perl=True)
    other = BuildConfig(system_perl=False, perl_version="5.38.2")

    assert package_identifier(system, "Foo-Bar") == "perl-Foo-Bar"
    assert package_identifier(system, "Foo-Bar", no_system_prefix=True) == "Foo-Bar"
    assert package_identifier(other, "Foo-Bar") == "perl538-Foo-Bar"
    assert package_identifier(other, "Foo-Bar", no_system_prefix=True) == "perl538-Foo-Bar"


def test_describe_uses_registry_provides(tmp_path):
    generator = make_generator(tmp_path)
    descriptor = generator.describe(
        make_release(),
        Override(),
        ["Foo-Bar-1.2/Makefile.PL"],
        requires=["perl(Carp)"],
        build_requires=["perl(Test::More) >= 0.88"],
    )

    assert descriptor.name == "perl-Foo-Bar"
    assert descriptor.version == "1.2"
    assert descriptor.license == "GPL+ or Artistic"
    assert descriptor.summary == "Bars for foos"
    assert descriptor.provides == ["perl(Foo::Bar) = 1.2"]
    assert descriptor.requires == ["perl(Carp)"]
    assert descriptor.build_requires == ["perl(Test::More) >= 0.88"]
    assert descriptor.noarch is True
    assert generator.registry.calls == []


def test_describe_falls_back_to_module_search(tmp_path):
    registry = StubRegistry(found=[
        ProvidedModule("Foo::Bar", "1.2"),
        ProvidedModule("Foo::Bar::Util", None),
        ProvidedModule("Foo::Bar", "1.2"),
    ])
    generator = make_generator(tmp_path, registry)

    descriptor = generator.describe(make_release(provides=[]), Override(), [])

    assert registry.calls == [("Foo-Bar-1.2", "TESTER")]
    assert descriptor.provides == ["perl(Foo::Bar) = 1.2", "perl(Foo::Bar::Util)"]


def test_describe_fails_without_provides(tmp_path):
    generator = make_generator(tmp_path, StubRegistry(found=None))
    assert generator.describe(make_release(provides=[]), Override(), []) is None

    generator = make_generator(tmp_path, StubRegistry(found=[]))
    assert generator.describe(make_release(provides=[]), Override(), []) is None


def test_describe_merges_override_data(tmp_path):
    generator = make_generator(tmp_path)
    override = Override(
        name="LWP",
        no_system_prefix=True,
        conflicts=["perl-libwww-perl < 6"],
        cpan_conflicts=["LWP::Old"],
        patches=["fix-tests.patch"],
        provides=["perl(LWP::Compat)"],
    )

    descriptor = generator.describe(
        make_release(license=["apache_2_0"]), override, ["Foo-Bar-1.2/Foo.c"]
    )

    assert descriptor.name == "LWP"
    assert descriptor.license == "ASL 2.0"
    assert descriptor.conflicts == ["perl-libwww-perl < 6", "perl(LWP::Old)"]
    assert descriptor.patches == ["fix-tests.patch"]
    assert descriptor.provides == ["perl(LWP::Compat)", "perl(Foo::Bar) = 1.2"]
    assert descriptor.noarch is False


def test_write_renders_spec(tmp_path):
    generator = make_generator(tmp_path)
    descriptor = generator.describe(
        make_release(), Override(patches=["a.patch"]), ["Foo-Bar-1.2/Build.PL"],
        requires=["perl-Baz >= 2"],
    )

    path = generator.write(descriptor, "Foo-Bar-1.2")

    assert path == tmp_path / "rpmbuild" / "SPECS" / "perl-Foo-Bar.spec"
    text = path.read_text()
    assert "Name:           perl-Foo-Bar\n" in text
    assert "Requires:       perl-Baz >= 2\n" in text
    assert "BuildArch:      noarch\n" in text
    assert "Patch0:         a.patch\n" in text
    assert "%setup -q -n Foo-Bar-1.2" in text
    assert "./Build pure_install" in text
    assert "%{?dist}" in text


def test_hand_authored_spec_wins(tmp_path):
    generator = make_generator(tmp_path)
    hand_authored = tmp_path / "specs" / "perl-Foo-Bar.spec"
    hand_authored.parent.mkdir(parents=True)
    hand_authored.write_text("# maintained by hand\n")
    descriptor = generator.describe(make_release(), Override(), [])

    path = generator.write(descriptor, "Foo-Bar-1.2")

    assert path == hand_authored
    assert hand_authored.read_text() == "# maintained by hand\n"
    assert not (tmp_path / "rpmbuild" / "SPECS").exists()


def test_write_failure_returns_none(tmp_path):
    generator = make_generator(tmp_path)
    (tmp_path / "rpmbuild").write_text("not a directory")
    descriptor = generator.describe(make_release(), Override(), [])

    assert generator.write(descriptor, "Foo-Bar-1.2") is None
