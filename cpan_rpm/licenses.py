"""
CPAN::Meta license identifiers to RPM license labels.
"""

from __future__ import annotations

from typing import Iterable, List


DEFAULT_LICENSE = "GPL+ or Artistic"

LICENSE_LABELS = {
    "agpl_3": "AGPLv3",
    "apache_1_1": "ASL 1.1",
    "apache_2_0": "ASL 2.0",
    "artistic_1": "Artistic",
    "artistic_2": "Artistic 2.0",
    "bsd": "BSD",
    "freebsd": "BSD",
    "gfdl_1_2": "GFDL",
    "gfdl_1_3": "GFDL",
    "gpl_1": "GPL+",
    "gpl_2": "GPLv2",
    "gpl_3": "GPLv3",
    "lgpl_2_1": "LGPLv2",
    "lgpl_3_0": "LGPLv3",
    "mit": "MIT",
    "mozilla_1_0": "MPLv1.0",
    "mozilla_1_1": "MPLv1.1",
    "openssl": "OpenSSL",
    "perl_5": DEFAULT_LICENSE,
    "qpl_1_0": "QPL",
    "ssleay": "OpenSSL",
    "sun": "SISSL",
    "zlib": "zlib",
}


def license_label(identifiers: Iterable[str]) -> str:
    """Map a release's license list to one label; unknown ids use the default."""
    labels: List[str] = []
    for identifier in identifiers or []:
        label = LICENSE_LABELS.get(str(identifier).lower())
        if label is None:
            return DEFAULT_LICENSE
        if label not in labels:
            labels.append(label)
    if not labels:
        return DEFAULT_LICENSE
    if len(labels) == 1:
        return labels[0]
    return " or ".join(f"({label})" if " " in label else label for label in labels)
