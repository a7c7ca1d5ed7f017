"""A queryable, updatable index of melange configuration files."""

from __future__ import annotations

import copy
import dataclasses
import io
from dataclasses import dataclass
from itertools import chain
from typing import Any, Callable, Iterator, TypeVar

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from .melange import Configuration, load_configuration
from .rwfs import DirFS

T = TypeVar("T")


class SkipEntry(Exception):
    """Raised by an updater to leave the current entry untouched."""


def _rt_yaml() -> YAML:
    y = YAML()
    y.preserve_quotes = True
    y.indent(mapping=2, sequence=4, offset=2)
    y.width = 4096
    return y


def _to_plain(value: Any) -> Any:
    """Convert updater output into data the YAML dumper can write."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for f in dataclasses.fields(value):
            item = _to_plain(getattr(value, f.name))
            if item is None or (isinstance(item, (str, list, dict)) and not item):
                continue
            result[f.name.rstrip("_")] = item
        return result
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


@dataclass
class Entry:
    """One configuration file in an Index."""

    path: str
    yaml_root: CommentedMap
    configuration: Configuration

    @property
    def id(self) -> str:
        return self.path


class Index:
    """Configurations decoded both as Configuration objects and as YAML trees."""

    def __init__(self, fsys: DirFS) -> None:
        self._fsys = fsys
        self._entries: list[Entry] = []
        self._by_id: dict[str, int] = {}
        self._by_path: dict[str, int] = {}
        self._by_package_name: dict[str, int] = {}

    @classmethod
    def from_fs(cls, fsys: DirFS) -> "Index":
        """Index every visible ``.yaml`` file directly inside the filesystem root."""
        index = cls(fsys)
        for entry in fsys.iterdir():
            if not entry.is_file(follow_symlinks=False):
                continue
            if entry.name.startswith(".") or not entry.name.endswith(".yaml"):
                continue
            index._process_and_add(entry.name)
        return index

    @classmethod
    def from_paths(cls, base_dir: str, *args: str) -> "Index":
        """Index the given paths, relative to ``base_dir``."""
        index = cls(DirFS(base_dir))
        for path in args:
            index._process_and_add(path)
        return index

    def select(self) -> "Selection":
        """Return a Selection of every entry in the index."""
        return Selection(list(self._entries), self)

    def configurations(self) -> list[Configuration]:
        return [e.configuration for e in self._entries]

    def paths(self) -> list[str]:
        return [e.path for e in self._entries]

    def _process(self, path: str) -> Entry:
        try:
            with self._fsys.open(path) as f:
                text = f.read().decode("utf-8")
        except OSError as e:
            raise OSError(f"unable to open configuration at {path!r}: {e}") from e
        try:
            root = _rt_yaml().load(text)
        except YAMLError as e:
            raise ValueError(f"unable to decode YAML at {path!r}: {e}") from e
        if not isinstance(root, dict):
            raise ValueError(f"unable to decode YAML at {path!r}: document is not a mapping")
        try:
            cfg = load_configuration(text)
        except ValueError as e:
            raise ValueError(f"unable to parse configuration at {path!r}: {e}") from e
        return Entry(path=path, yaml_root=root, configuration=cfg)

    def _process_and_add(self, path: str) -> None:
        entry = self._process(path)
        name = entry.configuration.package.name
        if name in self._by_package_name:
            raise ValueError(
                f"unable to add entry to index for {path!r}: unable to add configuration "
                f"for package {name!r} to index: package already added"
            )
        position = len(self._entries)
        self._entries.append(entry)
        self._by_id[entry.id] = position
        self._by_path[entry.path] = position
        self._by_package_name[name] = position

    def _process_and_update(self, path: str, position: int) -> None:
        entry = self._process(path)
        old_name = self._entries[position].configuration.package.name
        if self._by_package_name.get(old_name) == position:
            del self._by_package_name[old_name]
        self._entries[position] = entry
        self._by_id[entry.id] = position
        self._by_path[entry.path] = position
        self._by_package_name[entry.configuration.package.name] = position

    def _write(self, entry: Entry) -> None:
        buffer = io.StringIO()
        _rt_yaml().dump(entry.yaml_root, buffer)
        try:
            with self._fsys.open_writable(entry.path) as f:
                self._fsys.truncate(entry.path, 0)
                f.seek(0)
                f.write(buffer.getvalue().encode("utf-8"))
        except OSError as e:
            raise OSError(f"unable to update {entry.path!r}: {e}") from e

    def _update_section(
        self, entry: Entry, section: str, updater: Callable[[Configuration], Any]
    ) -> None:
        root = entry.yaml_root
        if section not in root:
            root[section] = CommentedMap()
        updated = updater(copy.deepcopy(entry.configuration))
        root[section] = _to_plain(updated)
        self._write(entry)
        try:
            self._process_and_update(entry.path, self._by_id[entry.id])
        except (OSError, ValueError) as e:
            raise ValueError(
                f"unable to process and update index entry for {entry.id!r}: {e}"
            ) from e


class Selection:
    """A view onto some of an Index's entries."""

    def __init__(self, entries: list[Entry], index: Index) -> None:
        self._entries = entries
        self._index = index

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries)

    def where_package_name(self, name: str) -> "Selection":
        """Narrow to entries whose package name is ``name``."""
        return Selection(
            [e for e in self._entries if e.configuration.package.name == name], self._index
        )

    def where_file_path(self, path: str) -> "Selection":
        """Narrow to entries whose file path is ``path``."""
        return Selection([e for e in self._entries if e.path == path], self._index)

    def _update(self, section: str, updater: Callable[[Configuration], Any]) -> None:
        for entry in self._entries:
            try:
                self._index._update_section(entry, section, updater)
            except SkipEntry:
                continue
            except Exception as e:
                raise RuntimeError(f"unable to update {section} for {entry.path!r}: {e}") from e

    def update_advisories(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``advisories`` section with what ``updater`` returns."""
        self._update("advisories", updater)

    def update_secfixes(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``secfixes`` section with what ``updater`` returns."""
        self._update("secfixes", updater)

    def update_package(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``package`` section with what ``updater`` returns."""
        self._update("package", updater)

    def update_environment(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``environment`` section with what ``updater`` returns."""
        self._update("environment", updater)

    def update_pipeline(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``pipeline`` section with what ``updater`` returns."""
        self._update("pipeline", updater)

    def update_subpackages(self, updater: Callable[[Configuration], Any]) -> None:
        """Replace the ``subpackages`` section with what ``updater`` returns."""
        self._update("subpackages", updater)


def map_entries(selection: Selection, func: Callable[[Entry], T]) -> list[T]:
    """Apply ``func`` to each entry and collect the results."""
    return [func(e) for e in selection]


def flat_map_entries(selection: Selection, func: Callable[[Entry], list[T]]) -> list[T]:
    """Apply ``func`` to each entry and concatenate the resulting lists."""
    return list(chain.from_iterable(func(e) for e in selection))