"""
MetaCPAN registry client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import DEFAULT_REGISTRY_URL
from .models import (
    PHASES,
    RELATIONSHIPS,
    DependencyEdge,
    ProvidedModule,
    Release,
)
from .versions import normalize_version


logger = logging.getLogger(__name__)


class RegistryError(RuntimeError):
    """A registry call failed; carries an HTTP-like status and reason."""

    def __init__(self, status: Optional[int], reason: str) -> None:
        super().__init__(f"{status or 'error'}: {reason}")
        self.status = status
        self.reason = reason


@dataclass
class RegistryCache:
    """Run-scoped in-memory caches for registry responses."""

    releases: Dict[str, Release] = field(default_factory=dict)
    owners: Dict[str, str] = field(default_factory=dict)
    searches: Dict[Tuple[str, str], List[ProvidedModule]] = field(default_factory=dict)
    session: requests.Session = field(default_factory=requests.Session)


def _as_list(value: Any) -> List[Any]:
    """MetaCPAN returns single-valued fields as scalars and others as lists."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _required_version(value: Any) -> Optional[str]:
    if value in (None, "", 0, "0"):
        return None
    return str(value)


def parse_dependencies(entries: List[Dict[str, Any]]) -> List[DependencyEdge]:
    edges = []
    for entry in entries or []:
        module = entry.get("module")
        phase = entry.get("phase", "runtime")
        relationship = entry.get("relationship", "requires")
        if not module or phase not in PHASES or relationship not in RELATIONSHIPS:
            logger.debug("Ignoring malformed dependency entry %r", entry)
            continue
        edges.append(DependencyEdge(
            module=module,
            version=_required_version(entry.get("version")),
            phase=phase,
            relationship=relationship,
        ))
    return edges


def parse_provides(data: Dict[str, Any]) -> List[ProvidedModule]:
    """Read explicit provides from the release's META data."""
    provides = (data.get("metadata") or {}).get("provides") or {}
    modules = []
    for module, info in sorted(provides.items()):
        info = info or {}
        modules.append(ProvidedModule(
            name=module,
            version=normalize_version(info.get("version")),
        ))
    return modules


def parse_release(data: Dict[str, Any]) -> Release:
    try:
        distribution = data["distribution"]
        version = normalize_version(data["version"])
    except KeyError as e:
        raise RegistryError(None, f"release metadata missing {e.args[0]}") from e
    return Release(
        distribution=distribution,
        name=data.get("name") or f"{distribution}-{version}",
        version=version or "0",
        archive=data.get("archive") or "",
        download_url=data.get("download_url") or "",
        license=[str(item) for item in _as_list(data.get("license"))],
        abstract=data.get("abstract") or "",
        author=data.get("author") or "",
        provides=parse_provides(data),
        dependencies=parse_dependencies(data.get("dependency")),
    )


class MetaCPANClient:
    """Client for the subset of the MetaCPAN API the resolver needs."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        cache: Optional[RegistryCache] = None,
        timeout: float = 30,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache or RegistryCache()
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        url = f"{self.base_url}/{path}"
        try:
            with self.cache.session.get(url, params=params, timeout=self.timeout) as response:
                response.raise_for_status()
                return response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            reason = e.response.reason if e.response is not None else str(e)
            raise RegistryError(status, f"{reason} ({url})") from e
        except (requests.RequestException, ValueError) as e:
            raise RegistryError(None, f"{e} ({url})") from e

    def get_release(self, distribution: str) -> Release:
        if distribution in self.cache.releases:
            logger.debug("Cache hit: release %s", distribution)
            return self.cache.releases[distribution]

        logger.info("Fetching release metadata for %s", distribution)
        release = parse_release(self._get(f"release/{distribution}"))
        self.cache.releases[distribution] = release
        return release

    def get_module_owner(self, module: str) -> str:
        if module in self.cache.owners:
            logger.debug("Cache hit: owner of %s", module)
            return self.cache.owners[module]

        logger.debug("Looking up distribution for module %s", module)
        data = self._get(f"module/{module}", params={"fields": "distribution"})
        owner = data.get("distribution")
        if isinstance(owner, list):
            owner = owner[0] if owner else None
        if not owner:
            raise RegistryError(404, f"no distribution provides {module}")
        self.cache.owners[module] = owner
        return owner

    def search_modules(self, release_name: str, author: str) -> List[ProvidedModule]:
        cache_key = (release_name, author)
        if cache_key in self.cache.searches:
            logger.debug("Cache hit: modules of %s/%s", author, release_name)
            return self.cache.searches[cache_key]

        logger.info("Searching modules provided by %s/%s", author, release_name)
        data = self._get("module/_search", params={
            "q": f'release:"{release_name}" AND author:"{author}"',
            "fields": "module.name,module.version",
            "size": 5000,
        })
        modules = []
        for hit in (data.get("hits") or {}).get("hits") or []:
            hit_fields = hit.get("fields") or {}
            names = _as_list(hit_fields.get("module.name"))
            versions = _as_list(hit_fields.get("module.version"))
            for index, name in enumerate(names):
                version = versions[index] if index < len(versions) else None
                modules.append(ProvidedModule(name=name, version=normalize_version(version)))
        self.cache.searches[cache_key] = modules
        return modules
