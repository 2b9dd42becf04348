"""YAML-backed settings storage with slash-separated keys and arrays."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

log = logging.getLogger(__name__)

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class SettingsError(ValueError):
    """Raised when settings text cannot be read or written as YAML."""


@dataclass(frozen=True)
class Setting:
    """Description of one user-editable setting and its default."""

    key: str
    default: Any
    suffix: str = ""
    min_value: int = 0
    max_value: int = 100
    read_only: bool = False


DEFAULT_PROJECT_SETTINGS: tuple[Setting, ...] = (
    Setting("Slice Interval", 5, suffix=" seconds", min_value=1, max_value=6000),
    Setting("Model Path", ""),
    Setting("Model Confidence", 70, suffix=" %", min_value=1, max_value=100),
    Setting("Automatically Filter Dead Video", False),
)

DEFAULT_GLOBAL_SETTINGS: tuple[Setting, ...] = ()


class _Loader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as text and accepts variant tags."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_constructor(
    "!QVariantList", lambda loader, node: loader.construct_sequence(node, deep=True)
)
_Loader.add_constructor(
    "!QVariantMap", lambda loader, node: loader.construct_mapping(node, deep=True)
)


def _plain(value: Any) -> Any:
    """Convert a value into something the YAML dumper can represent."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return str(value)


def _flatten(node: Mapping[Any, Any], parent: str, out: dict[str, Any]) -> None:
    for key, value in node.items():
        child_key = f"{parent}/{key}" if parent else str(key)
        if isinstance(value, dict):
            _flatten(value, child_key, out)
        else:
            out[child_key] = _plain(value)


def parse_settings(text: str) -> dict[str, Any]:
    """Parse YAML text into a flat mapping whose keys join groups with '/'."""
    try:
        document = yaml.load(text, Loader=_Loader)
    except yaml.YAMLError as error:
        log.warning("Exception when parsing YAML config file: %s", error)
        raise SettingsError(f"cannot parse settings: {error}") from error
    result: dict[str, Any] = {}
    if isinstance(document, dict):
        _flatten(document, "", result)
    return result


def dump_settings(mapping: Mapping[str, Any]) -> str:
    """Render a flat '/'-keyed mapping as nested YAML groups."""
    tree: dict[str, Any] = {}
    leaves: set[str] = set()
    for key in sorted(mapping):
        *groups, name = key.split("/")
        node = tree
        path = ""
        for group in groups:
            path = f"{path}/{group}"
            if path in leaves:
                raise SettingsError(f"key {key!r} nests under a value")
            node = node.setdefault(group, {})
        leaf = f"{path}/{name}"
        if name in node:
            raise SettingsError(f"key {key!r} is both a value and a group")
        node[name] = _plain(mapping[key])
        leaves.add(leaf)
    try:
        return yaml.safe_dump(
            tree, sort_keys=False, allow_unicode=True, default_flow_style=False
        )
    except yaml.YAMLError as error:
        log.warning("Exception when writing YAML config file: %s", error)
        raise SettingsError(f"cannot write settings: {error}") from error


def user_settings_path() -> Path:
    """Location of the per-user settings file."""
    return Path.home() / ".oceaneye" / "oceaneye" / "oceaneye.yaml"


class SettingsFile:
    """A settings store kept in a YAML file and written on every change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._values: dict[str, Any] = {}
        if self.path.exists():
            self._values = parse_settings(self.path.read_text(encoding="utf-8"))

    def value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._sync()

    def contains(self, key: str) -> bool:
        return key in self._values

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def keys(self) -> list[str]:
        return sorted(self._values)

    def remove(self, key: str) -> None:
        """Remove a key and every key grouped under it; '' removes everything."""
        self._drop(key)
        self._sync()

    def read_array(self, name: str) -> list[dict[str, Any]]:
        """Return the entries of an array written by write_array."""
        try:
            size = int(self._values.get(f"{name}/size", 0))
        except (TypeError, ValueError):
            size = 0
        entries = []
        for index in range(1, size + 1):
            prefix = f"{name}/{index}/"
            entries.append(
                {
                    key[len(prefix):]: value
                    for key, value in self._values.items()
                    if key.startswith(prefix)
                }
            )
        return entries

    def write_array(self, name: str, items: Iterable[Mapping[str, Any]]) -> None:
        """Replace the array called name with the given entries."""
        self._drop(name)
        count = 0
        for count, item in enumerate(items, start=1):
            for key, value in item.items():
                self._values[f"{name}/{count}/{key}"] = value
        self._values[f"{name}/size"] = count
        self._sync()

    def _drop(self, key: str) -> None:
        if not key:
            self._values.clear()
            return
        prefix = key + "/"
        for existing in [k for k in self._values if k == key or k.startswith(prefix)]:
            del self._values[existing]

    def _sync(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(dump_settings(self._values), encoding="utf-8")