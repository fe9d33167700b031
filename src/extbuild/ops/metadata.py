"""Extension metadata (metadata.json) and the release version counter."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict

from ..orchestrator.errors import MetadataReadError, MetadataWriteError, VersionFormatError
from ..orchestrator.logging import get_logger


log = get_logger("extbuild.metadata")

# Only these fields may change when metadata is rewritten
MUTABLE_FIELDS = frozenset({"version"})


@dataclass(frozen=True)
class MetadataDocument:
    uuid: str
    version: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)
    # Original key order, so a rewrite only changes values
    key_order: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetadataDocument":
        uuid = data.get("uuid")
        if not isinstance(uuid, str) or not uuid:
            raise MetadataReadError("metadata has no 'uuid' string")
        extra = {k: v for k, v in data.items() if k not in ("uuid", "version")}
        return cls(
            uuid=uuid,
            version=data.get("version"),
            extra=extra,
            key_order=tuple(data.keys()),
        )

    def to_dict(self) -> Dict[str, Any]:
        values = dict(self.extra)
        values["uuid"] = self.uuid
        values["version"] = self.version
        out: Dict[str, Any] = {k: values.pop(k) for k in self.key_order if k in values}
        out.update(values)
        return out

    def with_version(self, version: Any) -> "MetadataDocument":
        return replace(self, version=version)


def read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise MetadataReadError(f"{path} does not exist") from exc
    except (OSError, ValueError) as exc:
        raise MetadataReadError(f"Could not read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise MetadataReadError(f"{path} must contain a JSON object")
    return data


def write_json(path: Path, data: Dict[str, Any]) -> None:
    """Write `data` with a trailing newline, replacing the file in one step."""
    path = Path(path)
    text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise MetadataWriteError(f"Could not write {path}: {exc}") from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def load_metadata(path: Path) -> MetadataDocument:
    return MetadataDocument.from_dict(read_json(Path(path)))


def transform_metadata(
    path: Path,
    mutator: Callable[[MetadataDocument], MetadataDocument],
    dest: Path | None = None,
) -> MetadataDocument:
    """Read metadata at `path`, apply `mutator` and write it to `dest` (default: `path`)."""
    doc = load_metadata(path)
    new = mutator(doc)
    before, after = doc.to_dict(), new.to_dict()
    changed = {k for k in set(before) | set(after) if before.get(k) != after.get(k)}
    illegal = sorted(changed - MUTABLE_FIELDS)
    if illegal:
        raise MetadataWriteError(
            f"Refusing to change non-mutable metadata field(s): {', '.join(illegal)}"
        )
    target = Path(dest) if dest is not None else Path(path)
    write_json(target, after)
    log.debug("Wrote %s (version=%s)", target, new.version)
    return new


class VersionCounter:
    """Integer release counter persisted in a JSON file (package.json by default)."""

    def __init__(self, path: Path, key: str = "version"):
        self.path = Path(path)
        self.key = key

    def load(self) -> tuple[Dict[str, Any], int]:
        data = read_json(self.path)
        value = data.get(self.key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise VersionFormatError(
                f"'{self.key}' in {self.path} is not a non-negative integer: {value!r}"
            )
        return data, value

    def bump(self) -> tuple[int, bytes]:
        """Increment and persist the counter.

        Returns the new value and the file's previous bytes so the caller can
        put it back if the follow-up commit fails.
        """
        data, value = self.load()
        original = self.path.read_bytes()
        data[self.key] = value + 1
        write_json(self.path, data)
        return value + 1, original

    def restore(self, original: bytes) -> None:
        try:
            self.path.write_bytes(original)
        except OSError as exc:
            raise MetadataWriteError(f"Could not restore {self.path}: {exc}") from exc
