"""Pytest configuration and fixtures."""

import io
import uuid
from dataclasses import replace
from typing import List, Optional

import pytest

from caching import BuildpackCache
from cloudfoundry.client import BuildpackClient
from cloudfoundry.errors import NotFoundError
from cloudfoundry.models import Buildpack
from config import reset_config
from reconcilers.buildpack import BuildpackReconciler


class FakeBuildpackClient(BuildpackClient):
    """In-memory buildpack collection that records every call."""

    def __init__(
        self, buildpacks: Optional[List[Buildpack]] = None, identity: str = "fake"
    ):
        self.buildpacks = list(buildpacks or [])
        self._identity = identity
        self.calls = []

    @property
    def identity(self) -> str:
        return self._identity

    def calls_to(self, method: str) -> list:
        return [args for name, args in self.calls if name == method]

    @property
    def write_calls(self) -> list:
        writes = ("create", "update", "delete", "package_artifact", "upload")
        return [call for call in self.calls if call[0] in writes]

    async def list(self):
        self.calls.append(("list", ()))
        return [replace(bp) for bp in self.buildpacks]

    async def find_by_name(self, name):
        self.calls.append(("find_by_name", (name,)))
        for bp in self.buildpacks:
            if bp.name == name:
                return replace(bp)
        raise NotFoundError(f"Buildpack {name} not found")

    async def create(self, name, position, enabled, locked):
        self.calls.append(("create", (name, position, enabled, locked)))
        bp = Buildpack(
            guid=str(uuid.uuid4()),
            name=name,
            position=position,
            enabled=enabled,
            locked=locked,
        )
        self.buildpacks.append(bp)
        return replace(bp)

    async def update(self, buildpack):
        self.calls.append(("update", (replace(buildpack),)))
        for index, bp in enumerate(self.buildpacks):
            if bp.guid == buildpack.guid:
                self.buildpacks[index] = replace(buildpack, filename=bp.filename)
                return replace(self.buildpacks[index])
        raise NotFoundError(f"Buildpack {buildpack.guid} not found")

    async def delete(self, guid):
        self.calls.append(("delete", (guid,)))
        before = len(self.buildpacks)
        self.buildpacks = [bp for bp in self.buildpacks if bp.guid != guid]
        if len(self.buildpacks) == before:
            raise NotFoundError(f"Buildpack {guid} not found")

    async def package_artifact(self, path):
        self.calls.append(("package_artifact", (path,)))
        data = b"PK\x05\x06" + b"\x00" * 18
        return io.BytesIO(data), len(data)

    async def upload(self, buildpack, artifact, filename):
        self.calls.append(("upload", (buildpack.guid, filename)))
        for bp in self.buildpacks:
            if bp.guid == buildpack.guid:
                bp.filename = filename
                return
        raise NotFoundError(f"Buildpack {buildpack.guid} not found")


@pytest.fixture(autouse=True)
def clean_config():
    """Reset the configuration singleton around each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_client():
    return FakeBuildpackClient()


@pytest.fixture
def cache():
    return BuildpackCache()


@pytest.fixture
def reconciler(fake_client, cache):
    return BuildpackReconciler(fake_client, cache)


@pytest.fixture
def buildpack_dir(tmp_path):
    """A buildpack directory named rb with a detect script."""
    directory = tmp_path / "rb"
    (directory / "bin").mkdir(parents=True)
    (directory / "bin" / "detect").write_text("#!/bin/sh\nexit 0\n")
    (directory / "manifest.yml").write_text("language: ruby\n")
    return directory


@pytest.fixture
def sample_buildpack():
    """An observed buildpack matching the default spec values."""
    return Buildpack(
        guid="guid-ruby",
        name="ruby_buildpack",
        filename="rb.zip",
        position=1,
        enabled=True,
        locked=False,
    )
