"""Version identifiers derived from git state.

`RawTag` is what ends up in archive names and, for untagged commits, in the
built metadata. `NumericVersion` is the release counter parsed from a tag.
The two are kept as separate types so a commit id can never be mistaken for
a number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from ..orchestrator.errors import VersionFormatError
from ..orchestrator.logging import get_logger
from .vcs import GitClient


log = get_logger("extbuild.version")

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class RawTag:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumericVersion:
    value: int

    def __str__(self) -> str:
        return str(self.value)


VersionToken = Union[RawTag, NumericVersion]


def parse_numeric(tag: str, prefix: str = "v") -> NumericVersion:
    """Parse `v7` (or `7`) into NumericVersion(7).

    Anything other than an optional prefix followed by ASCII digits is
    rejected; a malformed tag never becomes version 0.
    """
    body = tag[len(prefix):] if prefix and tag.startswith(prefix) else tag
    if not _DIGITS.fullmatch(body):
        raise VersionFormatError(f"Unable to parse version from tag: {tag}")
    return NumericVersion(int(body))


def version_value(token: VersionToken) -> int | str:
    """Plain JSON value for a token, as written to metadata.json."""
    return token.value


class VersionResolver:
    def __init__(self, git: GitClient, tag_prefix: str = "v") -> None:
        self.git = git
        self.tag_prefix = tag_prefix

    async def resolve(self, raw_tag: bool = False) -> VersionToken:
        # Never cached: release resolves before and after creating the tag
        sha = await self.git.short_head()
        tag = await self.git.exact_tag(sha)
        if tag is None:
            log.debug("No tag on %s, using commit id", sha)
            return RawTag(sha)
        if raw_tag:
            return RawTag(tag)
        return parse_numeric(tag, self.tag_prefix)
