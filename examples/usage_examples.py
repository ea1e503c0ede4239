#!/usr/bin/env python3
"""
Example script showing how to use the cpan-rpm tool.
"""

from pathlib import Path

from cpan_rpm.config import BuildConfig, Override
from cpan_rpm.models import DependencyEdge
from cpan_rpm.registry import MetaCPANClient
from cpan_rpm.reporting import print_summary, save_results_json
from cpan_rpm.runner import BuildRunner
from cpan_rpm.versions import compare_versions


def example_registry_lookup():
    """Example: Look up a release and the owner of one of its modules."""
    print("="*60)
    print("Example 1: Registry Lookup")
    print("="*60)

    client = MetaCPANClient()
    release = client.get_release("Moo")

    print(f"\nRelease: {release.name}")
    print(f"Archive: {release.archive}")
    print(f"Dependencies: {len(release.dependencies)}")
    print(f"Owner of Role::Tiny: {client.get_module_owner('Role::Tiny')}")


def example_version_ordering():
    """Example: Perl version ordering."""
    print("\n" + "="*60)
    print("Example 2: Version Ordering")
    print("="*60)

    for left, right in [("1.10", "1.9"), ("v1.2.3", "1.002003"), ("0.001_01", "0.001")]:
        print(f"compare({left!r}, {right!r}) = {compare_versions(left, right)}")


def example_build():
    """Example: Build a distribution with an override for a broken dependency."""
    print("\n" + "="*60)
    print("Example 3: Build Moo for perl 5.36.0")
    print("="*60)

    config = BuildConfig(
        perl_version="5.36.0",
        repository=Path("./output/repo"),
        topdir=Path("./output/rpmbuild"),
        overrides={
            "Moo": Override(
                missing=[DependencyEdge("Sub::Quote", "2.006006")],
                exclude_requires=frozenset({"Devel::GlobalDestruction"}),
            ),
        },
    )

    runner = BuildRunner.from_config(config)
    report = runner.run(["Moo"])

    print_summary(report, config.perl_version)
    save_results_json(report, Path("./output"))


if __name__ == "__main__":
    import sys

    print("cpan-rpm - Example Usage")
    print("="*60)
    print("\nNOTE: These examples require network access and may take several minutes.")
    print("Example 3 needs rpmbuild, rpm and dnf with root privileges.")

    try:
        example_registry_lookup()
        example_version_ordering()

        # Example 3 installs packages on this host (commented out by default)
        # example_build()

        print("\n" + "="*60)
        print("Examples completed successfully!")
        print("="*60)

    except Exception as e:
        print(f"\nError running examples: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
