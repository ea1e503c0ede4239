"""
Core-baseline table: modules bundled with a perl release.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional

from .config import ConfigError
from .versions import version_key


logger = logging.getLogger(__name__)

_CORELIST_SCRIPT = (
    "use version; use Module::CoreList; use JSON::PP; "
    "my $v = version->parse($ARGV[0])->numify; "
    "my $m = $Module::CoreList::version{$v} or die qq{unknown perl $ARGV[0]\\n}; "
    "print JSON::PP->new->canonical->encode($m);"
)


class CoreBaseline:
    """Module name to bundled version for one target perl."""

    def __init__(self, perl_version: str, modules: Dict[str, Optional[str]]) -> None:
        self.perl_version = perl_version
        self.modules = {
            name: (str(version) if version is not None else None)
            for name, version in modules.items()
        }

    def __contains__(self, module: str) -> bool:
        return module in self.modules

    def __len__(self) -> int:
        return len(self.modules)

    def lookup(self, module: str) -> Optional[str]:
        return self.modules.get(module)

    @classmethod
    def from_json(cls, path: Path, perl_version: str) -> "CoreBaseline":
        """Load a baseline file.

        The file is either a flat ``{module: version}`` object or an object
        keyed by perl version; keys are matched by version value, so
        ``5.036000`` and ``5.36.0`` select the same table.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read core baseline {path}: {e}") from e

        if data and all(isinstance(value, dict) for value in data.values()):
            wanted = version_key(perl_version)
            for key, modules in data.items():
                if version_key(key) == wanted:
                    return cls(perl_version, modules)
            raise ConfigError(f"{path}: no core baseline for perl {perl_version}")
        return cls(perl_version, data)

    @classmethod
    def from_corelist(cls, perl: str, perl_version: str) -> "CoreBaseline":
        """Read the baseline from Module::CoreList of the given perl binary."""
        logger.info("Reading Module::CoreList for perl %s from %s", perl_version, perl)
        try:
            result = subprocess.run(
                [perl, "-MJSON::PP", "-e", _CORELIST_SCRIPT, perl_version],
                capture_output=True,
                text=True,
                timeout=60,
            )
            if result.returncode != 0:
                raise ConfigError(
                    f"Module::CoreList lookup failed for perl {perl_version}: {result.stderr.strip()}"
                )
            return cls(perl_version, json.loads(result.stdout))
        except (subprocess.TimeoutExpired, json.JSONDecodeError, FileNotFoundError) as e:
            raise ConfigError(f"Module::CoreList lookup failed for perl {perl_version}: {e}") from e
