"""
Source archive download and inspection.
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from pathlib import Path
from typing import List, Optional

import requests
from tqdm import tqdm

from .models import Release


logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """A source archive could not be downloaded or read."""


class ArchiveFetcher:
    """Download release archives into the build's source directory."""

    def __init__(self, source_dir: Path, session: Optional[requests.Session] = None) -> None:
        self.source_dir = Path(source_dir)
        self.session = session or requests.Session()

    def fetch(self, release: Release) -> Path:
        """Download the release archive unless it is already present."""
        if not release.download_url:
            raise FetchError(f"{release.distribution} has no download URL")
        archive_name = release.archive or release.download_url.rsplit("/", 1)[-1]
        target = self.source_dir / archive_name
        if target.exists():
            logger.debug("Using cached archive %s", target)
            return target

        self.source_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        logger.info("Downloading %s", release.download_url)
        try:
            with self.session.get(release.download_url, stream=True, timeout=60) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("content-length", 0))
                with open(partial, "wb") as f:
                    with tqdm(total=total_size, unit="B", unit_scale=True,
                              desc=archive_name, leave=False) as pbar:
                        for chunk in response.iter_content(chunk_size=8192):
                            f.write(chunk)
                            pbar.update(len(chunk))
        except (requests.RequestException, OSError) as e:
            partial.unlink(missing_ok=True)
            raise FetchError(f"Download of {release.download_url} failed: {e}") from e

        partial.rename(target)
        return target

    def list_contents(self, archive: Path) -> List[str]:
        """Return the member names of a tar or zip archive."""
        try:
            if zipfile.is_zipfile(archive):
                with zipfile.ZipFile(archive) as zip_ref:
                    return zip_ref.namelist()
            with tarfile.open(archive) as tar_ref:
                return tar_ref.getnames()
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise FetchError(f"Cannot read archive {archive}: {e}") from e
