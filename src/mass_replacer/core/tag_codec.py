"""Binary tag tree codec (big-endian, NBT layout).

Layout of a named tag (root and compound members):
  type(u8) | name_len(u16) | name (modified UTF-8) | payload

Payloads:
  byte/short/int/long      i8 / i16 / i32 / i64
  float/double             f32 / f64
  byte_array               count(i32) | bytes
  string                   byte_len(u16) | modified UTF-8
  list                     elem_type(u8) | count(i32) | count * payload
  compound                 named tags ... | TAG_END(u8)
  int_array / long_array   count(i32) | count * i32 / i64

decode(encode(t)) == t for every well-formed tree, and encode(decode(b)) == b for
every b produced by encode().
"""

from __future__ import annotations

import struct

from mutf8 import decode_modified_utf8, encode_modified_utf8

from mass_replacer.core.tags import (
    TAG_BYTE,
    TAG_BYTE_ARRAY,
    TAG_CLASSES,
    TAG_COMPOUND,
    TAG_DOUBLE,
    TAG_END,
    TAG_FLOAT,
    TAG_INT,
    TAG_INT_ARRAY,
    TAG_LIST,
    TAG_LONG,
    TAG_LONG_ARRAY,
    TAG_SHORT,
    TAG_STRING,
    Tag,
    TagByte,
    TagByteArray,
    TagCompound,
    TagDouble,
    TagFloat,
    TagInt,
    TagIntArray,
    TagList,
    TagLong,
    TagLongArray,
    TagShort,
    TagString,
)
from mass_replacer.errors import InvalidEncoding, MalformedTag

MAX_DEPTH = 512

# fixed-width scalars: type -> struct format
_SCALAR_FMT: dict[int, str] = {
    TAG_BYTE: ">b",
    TAG_SHORT: ">h",
    TAG_INT: ">i",
    TAG_LONG: ">q",
    TAG_FLOAT: ">f",
    TAG_DOUBLE: ">d",
}

# minimum payload size per type, used to reject impossible list counts early
_MIN_PAYLOAD: dict[int, int] = {
    TAG_END: 0,
    TAG_BYTE: 1,
    TAG_SHORT: 2,
    TAG_INT: 4,
    TAG_LONG: 8,
    TAG_FLOAT: 4,
    TAG_DOUBLE: 8,
    TAG_BYTE_ARRAY: 4,
    TAG_STRING: 2,
    TAG_LIST: 5,
    TAG_COMPOUND: 1,
    TAG_INT_ARRAY: 4,
    TAG_LONG_ARRAY: 4,
}


# -------------------
# Decode
# -------------------
def _need(buf: bytes, idx: int, n: int, what: str) -> None:
    if idx + n > len(buf):
        raise MalformedTag(f"tag troncato: {what} richiede {n} byte a offset {idx}, disponibili {len(buf) - idx}")


def _read_count(buf: bytes, idx: int, what: str) -> tuple[int, int]:
    _need(buf, idx, 4, what)
    (n,) = struct.unpack_from(">i", buf, idx)
    if n < 0:
        raise MalformedTag(f"{what}: count negativo ({n}) a offset {idx}")
    return n, idx + 4


def _read_string(buf: bytes, idx: int) -> tuple[str, int]:
    _need(buf, idx, 2, "string length")
    (n,) = struct.unpack_from(">H", buf, idx)
    idx += 2
    _need(buf, idx, n, "string")
    raw = bytes(buf[idx : idx + n])
    try:
        s = decode_modified_utf8(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidEncoding(f"string non valida (modified UTF-8) a offset {idx}: {e}") from e
    return s, idx + n


def _read_payload(buf: bytes, idx: int, tid: int, depth: int) -> tuple[Tag, int]:
    fmt = _SCALAR_FMT.get(tid)
    if fmt is not None:
        size = struct.calcsize(fmt)
        _need(buf, idx, size, TAG_CLASSES[tid].__name__)
        (v,) = struct.unpack_from(fmt, buf, idx)
        return TAG_CLASSES[tid](v), idx + size

    if tid == TAG_STRING:
        s, idx = _read_string(buf, idx)
        return TagString(s), idx

    if tid == TAG_BYTE_ARRAY:
        n, idx = _read_count(buf, idx, "byte_array")
        _need(buf, idx, n, "byte_array")
        return TagByteArray(bytes(buf[idx : idx + n])), idx + n

    if tid == TAG_INT_ARRAY:
        n, idx = _read_count(buf, idx, "int_array")
        _need(buf, idx, 4 * n, "int_array")
        return TagIntArray(list(struct.unpack_from(f">{n}i", buf, idx))), idx + 4 * n

    if tid == TAG_LONG_ARRAY:
        n, idx = _read_count(buf, idx, "long_array")
        _need(buf, idx, 8 * n, "long_array")
        return TagLongArray(list(struct.unpack_from(f">{n}q", buf, idx))), idx + 8 * n

    if depth >= MAX_DEPTH:
        raise MalformedTag(f"annidamento troppo profondo (> {MAX_DEPTH})")

    if tid == TAG_LIST:
        _need(buf, idx, 1, "list elem_type")
        elem_type = buf[idx]
        idx += 1
        n, idx = _read_count(buf, idx, "list")
        if elem_type not in _MIN_PAYLOAD:
            raise MalformedTag(f"list: elem_type sconosciuto: {elem_type}")
        if elem_type == TAG_END and n > 0:
            raise MalformedTag(f"list: {n} elementi di tipo end")
        if n * _MIN_PAYLOAD[elem_type] > len(buf) - idx:
            raise MalformedTag(f"list: count {n} incompatibile con i byte rimanenti ({len(buf) - idx})")
        items: list[Tag] = []
        for _ in range(n):
            item, idx = _read_payload(buf, idx, elem_type, depth + 1)
            items.append(item)
        return TagList(elem_type=elem_type, items=items), idx

    if tid == TAG_COMPOUND:
        entries: dict[str, Tag] = {}
        while True:
            _need(buf, idx, 1, "compound (manca TAG_END)")
            child_tid = buf[idx]
            idx += 1
            if child_tid == TAG_END:
                break
            name, idx = _read_string(buf, idx)
            if child_tid not in TAG_CLASSES:
                raise MalformedTag(f"compound: tipo sconosciuto {child_tid} per chiave {name!r}")
            child, idx = _read_payload(buf, idx, child_tid, depth + 1)
            entries[name] = child
        return TagCompound(entries=entries), idx

    raise MalformedTag(f"tipo tag sconosciuto: {tid}")


def decode_named(data: bytes) -> tuple[str, Tag]:
    """Decode a full root tag. Returns (root_name, root_tag).

    The root must be a compound and must span the whole buffer.
    """
    buf = bytes(data)
    if not buf:
        raise MalformedTag("tag vuoto")
    tid = buf[0]
    if tid != TAG_COMPOUND:
        raise MalformedTag(f"root non compound (tipo {tid})")
    name, idx = _read_string(buf, 1)
    root, idx = _read_payload(buf, idx, tid, 0)
    if idx != len(buf):
        raise MalformedTag(f"byte in eccesso dopo la root: {len(buf) - idx}")
    return name, root


def decode(data: bytes) -> Tag:
    return decode_named(data)[1]


# -------------------
# Encode
# -------------------
def _write_string(out: bytearray, s: str) -> None:
    try:
        raw = encode_modified_utf8(s)
    except (UnicodeEncodeError, ValueError) as e:
        raise InvalidEncoding(f"string non codificabile: {e}") from e
    if len(raw) > 0xFFFF:
        raise MalformedTag(f"string troppo lunga ({len(raw)} byte, max 65535)")
    out += struct.pack(">H", len(raw))
    out += raw


def _pack(fmt: str, *values: object) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as e:
        raise MalformedTag(f"valore fuori range per {fmt}: {e}") from e


def _write_payload(out: bytearray, tag: Tag) -> None:
    tid = tag.type_id
    fmt = _SCALAR_FMT.get(tid)
    if fmt is not None:
        out += _pack(fmt, tag.value)  # type: ignore[attr-defined]
        return

    if isinstance(tag, TagString):
        _write_string(out, tag.value)
    elif isinstance(tag, TagByteArray):
        out += _pack(">i", len(tag.value))
        out += bytes(tag.value)
    elif isinstance(tag, TagIntArray):
        out += _pack(">i", len(tag.value))
        out += _pack(f">{len(tag.value)}i", *tag.value)
    elif isinstance(tag, TagLongArray):
        out += _pack(">i", len(tag.value))
        out += _pack(f">{len(tag.value)}q", *tag.value)
    elif isinstance(tag, TagList):
        if tag.items and tag.elem_type == TAG_END:
            raise MalformedTag("list non vuota con elem_type end")
        expected = TAG_CLASSES.get(tag.elem_type)
        if expected is None and tag.elem_type != TAG_END:
            raise MalformedTag(f"list: elem_type sconosciuto: {tag.elem_type}")
        out.append(tag.elem_type)
        out += _pack(">i", len(tag.items))
        for item in tag.items:
            if type(item) is not expected:
                raise MalformedTag(
                    f"list di {expected.__name__ if expected else 'end'}: elemento {type(item).__name__}"
                )
            _write_payload(out, item)
    elif isinstance(tag, TagCompound):
        for key, child in tag.entries.items():
            _write_named(out, key, child)
        out.append(TAG_END)
    else:
        raise MalformedTag(f"tag non codificabile: {type(tag).__name__}")


def _write_named(out: bytearray, name: str, tag: Tag) -> None:
    if tag.type_id not in TAG_CLASSES:
        raise MalformedTag(f"tag non codificabile: {type(tag).__name__}")
    out.append(tag.type_id)
    _write_string(out, name)
    _write_payload(out, tag)


def encode(tag: Tag, name: str = "") -> bytes:
    """Encode a root compound (with its root name)."""
    if not isinstance(tag, TagCompound):
        raise MalformedTag(f"root non compound: {type(tag).__name__}")
    out = bytearray()
    _write_named(out, name, tag)
    return bytes(out)
