"""Tag tree data model.

One class per tag kind. Compounds keep insertion order (dict), lists carry their
declared element type so that an empty list re-encodes exactly as it was read.

IMPORTANT: keep the TAG_* ids stable, they are the on-disk type ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field

TAG_END = 0
TAG_BYTE = 1
TAG_SHORT = 2
TAG_INT = 3
TAG_LONG = 4
TAG_FLOAT = 5
TAG_DOUBLE = 6
TAG_BYTE_ARRAY = 7
TAG_STRING = 8
TAG_LIST = 9
TAG_COMPOUND = 10
TAG_INT_ARRAY = 11
TAG_LONG_ARRAY = 12

TAG_NAMES: dict[int, str] = {
    TAG_END: "end",
    TAG_BYTE: "byte",
    TAG_SHORT: "short",
    TAG_INT: "int",
    TAG_LONG: "long",
    TAG_FLOAT: "float",
    TAG_DOUBLE: "double",
    TAG_BYTE_ARRAY: "byte_array",
    TAG_STRING: "string",
    TAG_LIST: "list",
    TAG_COMPOUND: "compound",
    TAG_INT_ARRAY: "int_array",
    TAG_LONG_ARRAY: "long_array",
}


class Tag:
    """Base class of every tag variant."""

    type_id: int = -1

    @property
    def type_name(self) -> str:
        return TAG_NAMES.get(self.type_id, f"unknown({self.type_id})")


@dataclass
class TagByte(Tag):
    value: int
    type_id = TAG_BYTE


@dataclass
class TagShort(Tag):
    value: int
    type_id = TAG_SHORT


@dataclass
class TagInt(Tag):
    value: int
    type_id = TAG_INT


@dataclass
class TagLong(Tag):
    value: int
    type_id = TAG_LONG


@dataclass
class TagFloat(Tag):
    value: float
    type_id = TAG_FLOAT


@dataclass
class TagDouble(Tag):
    value: float
    type_id = TAG_DOUBLE


@dataclass
class TagByteArray(Tag):
    value: bytes
    type_id = TAG_BYTE_ARRAY


@dataclass
class TagString(Tag):
    value: str
    type_id = TAG_STRING


@dataclass
class TagList(Tag):
    elem_type: int = TAG_END
    items: list[Tag] = field(default_factory=list)
    type_id = TAG_LIST

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass
class TagCompound(Tag):
    entries: dict[str, Tag] = field(default_factory=dict)
    type_id = TAG_COMPOUND

    def get(self, key: str) -> Tag | None:
        return self.entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __getitem__(self, key: str) -> Tag:
        return self.entries[key]

    def __setitem__(self, key: str, value: Tag) -> None:
        self.entries[key] = value

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class TagIntArray(Tag):
    value: list[int] = field(default_factory=list)
    type_id = TAG_INT_ARRAY


@dataclass
class TagLongArray(Tag):
    value: list[int] = field(default_factory=list)
    type_id = TAG_LONG_ARRAY


TAG_CLASSES: dict[int, type[Tag]] = {
    TAG_BYTE: TagByte,
    TAG_SHORT: TagShort,
    TAG_INT: TagInt,
    TAG_LONG: TagLong,
    TAG_FLOAT: TagFloat,
    TAG_DOUBLE: TagDouble,
    TAG_BYTE_ARRAY: TagByteArray,
    TAG_STRING: TagString,
    TAG_LIST: TagList,
    TAG_COMPOUND: TagCompound,
    TAG_INT_ARRAY: TagIntArray,
    TAG_LONG_ARRAY: TagLongArray,
}


def child_compound(tag: Tag | None, key: str) -> TagCompound | None:
    """Return ``tag[key]`` if tag is a compound and the child is a compound too."""
    if not isinstance(tag, TagCompound):
        return None
    child = tag.entries.get(key)
    return child if isinstance(child, TagCompound) else None


def child_list(tag: Tag | None, key: str) -> TagList | None:
    if not isinstance(tag, TagCompound):
        return None
    child = tag.entries.get(key)
    return child if isinstance(child, TagList) else None


def child_string(tag: Tag | None, key: str) -> TagString | None:
    if not isinstance(tag, TagCompound):
        return None
    child = tag.entries.get(key)
    return child if isinstance(child, TagString) else None
