"""Unit tests for artifact filename derivation."""

import os

import pytest

from artifacts import ARCHIVE_SUFFIX, generate_filename, is_web_url
from cloudfoundry.errors import LocalResolutionError


class TestIsWebUrl:
    """Tests for is_web_url()."""

    @pytest.mark.parametrize(
        "path",
        [
            "https://host/path/bp.zip",
            "http://example.com/buildpacks/ruby.zip?token=abc",
        ],
    )
    def test_web_urls(self, path):
        assert is_web_url(path) is True

    @pytest.mark.parametrize(
        "path",
        ["/tmp/foo", "relative/dir", "file:///tmp/x.zip", "ftp://host/bp.zip", ""],
    )
    def test_non_web_paths(self, path):
        assert is_web_url(path) is False


class TestGenerateFilename:
    """Tests for generate_filename()."""

    def test_web_url_uses_base_path(self):
        assert generate_filename("https://host/path/bp.zip") == "bp.zip"

    def test_web_url_ignores_query(self):
        assert generate_filename("https://host/path/bp.zip?x=1") == "bp.zip"

    def test_web_url_trailing_slash_uses_last_segment(self):
        assert generate_filename("https://host/buildpacks/ruby/") == "ruby"
        assert generate_filename("https://host/buildpacks/ruby//?x=1") == "ruby"

    @pytest.mark.parametrize("url", ["https://host", "https://host/", "http://host/?x=1"])
    def test_web_url_without_path_raises(self, url):
        with pytest.raises(LocalResolutionError, match="Cannot derive"):
            generate_filename(url)

    def test_web_url_is_not_resolved_locally(self):
        # Must not touch the filesystem
        assert generate_filename("https://host/does/not/exist.zip") == "exist.zip"

    def test_directory_gets_archive_suffix(self, tmp_path):
        directory = tmp_path / "foo"
        directory.mkdir()
        assert generate_filename(str(directory)) == "foo" + ARCHIVE_SUFFIX
        assert generate_filename(str(directory)) == "foo.zip"

    def test_directory_with_trailing_slash(self, tmp_path):
        directory = tmp_path / "foo"
        directory.mkdir()
        assert generate_filename(str(directory) + os.sep) == "foo.zip"

    def test_regular_file_keeps_name(self, tmp_path):
        archive = tmp_path / "x.zip"
        archive.write_bytes(b"")
        assert generate_filename(str(archive)) == "x.zip"

    def test_relative_path_is_resolved(self, tmp_path, monkeypatch):
        (tmp_path / "bp").mkdir()
        monkeypatch.chdir(tmp_path)
        assert generate_filename(".") == tmp_path.name + ".zip"
        assert generate_filename("bp") == "bp.zip"

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(LocalResolutionError):
            generate_filename(str(tmp_path / "missing"))

    def test_deterministic(self, tmp_path):
        directory = tmp_path / "foo"
        directory.mkdir()
        assert generate_filename(str(directory)) == generate_filename(str(directory))
