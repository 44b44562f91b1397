from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Tuple

from .errors import UnknownClassError


@dataclass(frozen=True)
class ClassEntry:
    id: int
    name: str
    display_name: str


class ClassRegistry:
    """
    Immutable id -> label lookup for the classes a model was trained on.
    """

    def __init__(self, entries: Iterable[ClassEntry]):
        by_id: Dict[int, ClassEntry] = {}
        for entry in entries:
            if isinstance(entry.id, bool) or not isinstance(entry.id, int):
                raise ValueError(f"class id must be an integer, got {entry.id!r}")
            if entry.id < 1:
                raise ValueError(f"class id must be >= 1, got {entry.id}")
            if entry.id in by_id:
                raise ValueError(f"duplicate class id: {entry.id}")
            by_id[entry.id] = entry
        self._entries = by_id

    def resolve(self, class_id: int) -> str:
        entry = self._entries.get(int(class_id))
        if entry is None:
            raise UnknownClassError(int(class_id))
        return entry.display_name

    def entry(self, class_id: int) -> ClassEntry:
        entry = self._entries.get(int(class_id))
        if entry is None:
            raise UnknownClassError(int(class_id))
        return entry

    def ids(self) -> Tuple[int, ...]:
        return tuple(sorted(self._entries))

    def names(self) -> Dict[int, str]:
        return {i: self._entries[i].display_name for i in self.ids()}

    def __contains__(self, class_id: object) -> bool:
        return class_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ClassEntry]:
        return (self._entries[i] for i in self.ids())

    def __repr__(self) -> str:
        return f"ClassRegistry({self.names()!r})"


DEFAULT_CLASSES: Tuple[ClassEntry, ...] = (
    ClassEntry(id=1, name="person", display_name="person"),
    ClassEntry(id=2, name="hat", display_name="helmet"),
)

DEFAULT_REGISTRY = ClassRegistry(DEFAULT_CLASSES)


def load_class_registry(metadata_path: str) -> ClassRegistry:
    """
    Load a registry from the lightweight `metadata.yaml` format:

        names:
          1: person
          2: hat/helmet

    `name/display` sets a display name that differs from the internal name.
    Parsed by hand so the package does not need PyYAML.
    """

    entries = []
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue

            # Parse "id: label"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                # a new top-level key ends the names block
                if not raw.startswith((" ", "\t")):
                    in_names = False
                continue
            name, _, display = right.partition("/")
            name = name.strip()
            entries.append(ClassEntry(id=int(left), name=name, display_name=display.strip() or name))

    return ClassRegistry(entries)
