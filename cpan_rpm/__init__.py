"""
CPAN RPM Builder

Builds RPM packages for CPAN distributions, resolving each distribution's
dependencies against the modules bundled with the target perl.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main"]
