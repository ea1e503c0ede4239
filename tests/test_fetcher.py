"""Tests for source archive download and listing."""

import io
import tarfile
import zipfile

import pytest
import requests

from cpan_rpm.fetcher import ArchiveFetcher, FetchError
from cpan_rpm.models import Release


class FakeStream:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code
        self.headers = {"content-length": str(len(body))}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)

    def iter_content(self, chunk_size):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.urls = []

    def get(self, url, stream=False, timeout=None):
        self.urls.append(url)
        return self.response


def make_release(**kwargs):
    values = dict(
        distribution="Foo-Bar",
        name="Foo-Bar-1.2",
        version="1.2",
        archive="Foo-Bar-1.2.tar.gz",
        download_url="https://cpan.example.org/Foo-Bar-1.2.tar.gz",
    )
    values.update(kwargs)
    return Release(**values)


def test_fetch_downloads_once(tmp_path):
    session = FakeSession(FakeStream(b"x" * 20000))
    fetcher = ArchiveFetcher(tmp_path / "SOURCES", session=session)

    first = fetcher.fetch(make_release())
    second = fetcher.fetch(make_release())

    assert first == second == tmp_path / "SOURCES" / "Foo-Bar-1.2.tar.gz"
    assert first.read_bytes() == b"x" * 20000
    assert session.urls == ["https://cpan.example.org/Foo-Bar-1.2.tar.gz"]


def test_fetch_failure_leaves_no_partial_file(tmp_path):
    fetcher = ArchiveFetcher(tmp_path, session=FakeSession(FakeStream(b"", 404)))

    with pytest.raises(FetchError):
        fetcher.fetch(make_release())

    assert list(tmp_path.iterdir()) == []


def test_fetch_without_url(tmp_path):
    with pytest.raises(FetchError):
        ArchiveFetcher(tmp_path).fetch(make_release(download_url=""))


def test_list_contents_tar_and_zip(tmp_path):
    tar_path = tmp_path / "Foo-1.0.tar.gz"
    with tarfile.open(tar_path, "w:gz") as tar:
        data = b"use ExtUtils::MakeMaker;\n"
        info = tarfile.TarInfo("Foo-1.0/Makefile.PL")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))

    zip_path = tmp_path / "Foo-1.0.zip"
    with zipfile.ZipFile(zip_path, "w") as archive:
        archive.writestr("Foo-1.0/Build.PL", "use Module::Build;\n")

    fetcher = ArchiveFetcher(tmp_path)

    assert fetcher.list_contents(tar_path) == ["Foo-1.0/Makefile.PL"]
    assert fetcher.list_contents(zip_path) == ["Foo-1.0/Build.PL"]


def test_list_contents_rejects_garbage(tmp_path):
    bogus = tmp_path / "bogus.tar.gz"
    bogus.write_bytes(b"not an archive")

    with pytest.raises(FetchError):
        ArchiveFetcher(tmp_path).list_contents(bogus)
