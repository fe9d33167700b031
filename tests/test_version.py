# tests/test_version.py

from __future__ import annotations

import pytest

from extbuild.ops.vcs import GitClient
from extbuild.ops.version import NumericVersion, RawTag, VersionResolver, parse_numeric
from extbuild.orchestrator.errors import RepositoryError, VersionFormatError

from .fakes import FakeRunner


def make_resolver(runner: FakeRunner) -> VersionResolver:
    return VersionResolver(GitClient(runner, cwd="."), tag_prefix="v")


@pytest.mark.asyncio
async def test_tagged_commit_resolves_to_number_and_raw_tag() -> None:
    resolver = make_resolver(FakeRunner(sha="abc1234", tags={"abc1234": "v7"}))

    assert await resolver.resolve(raw_tag=False) == NumericVersion(7)
    assert await resolver.resolve(raw_tag=True) == RawTag("v7")


@pytest.mark.asyncio
async def test_untagged_commit_falls_back_to_commit_id() -> None:
    resolver = make_resolver(FakeRunner(sha="abc1234"))

    numeric_path = await resolver.resolve(raw_tag=False)
    raw_path = await resolver.resolve(raw_tag=True)

    assert numeric_path == RawTag("abc1234")
    assert raw_path == RawTag("abc1234")
    assert not isinstance(numeric_path, NumericVersion)


@pytest.mark.asyncio
async def test_non_numeric_tag_is_rejected() -> None:
    resolver = make_resolver(FakeRunner(sha="abc1234", tags={"abc1234": "release-x"}))

    with pytest.raises(VersionFormatError, match="release-x"):
        await resolver.resolve(raw_tag=False)
    # the raw form is still usable for naming
    assert await resolver.resolve(raw_tag=True) == RawTag("release-x")


@pytest.mark.asyncio
async def test_resolution_is_not_cached() -> None:
    runner = FakeRunner(sha="abc1234")
    resolver = make_resolver(runner)

    assert await resolver.resolve(raw_tag=True) == RawTag("abc1234")
    runner.tags["abc1234"] = "v8"
    assert await resolver.resolve(raw_tag=True) == RawTag("v8")


@pytest.mark.asyncio
async def test_outside_a_repository_raises() -> None:
    resolver = make_resolver(FakeRunner(fail={"rev-parse"}))

    with pytest.raises(RepositoryError):
        await resolver.resolve()


@pytest.mark.asyncio
async def test_resolver_issues_read_only_commands() -> None:
    runner = FakeRunner(sha="abc1234", tags={"abc1234": "v2"})
    await make_resolver(runner).resolve()

    assert [c[1] for c in runner.calls] == ["rev-parse", "describe"]


@pytest.mark.parametrize(
    "tag, expected",
    [("v7", 7), ("12", 12), ("v0", 0)],
)
def test_parse_numeric_accepts_plain_counters(tag: str, expected: int) -> None:
    assert parse_numeric(tag) == NumericVersion(expected)


@pytest.mark.parametrize("tag", ["v", "vv3", "v1.2", "v-1", "7abc", ""])
def test_parse_numeric_never_defaults_to_zero(tag: str) -> None:
    with pytest.raises(VersionFormatError):
        parse_numeric(tag)
