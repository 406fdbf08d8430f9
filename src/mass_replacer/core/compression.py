"""Chunk compression handler.

Every region slot stores a one-byte scheme marker in front of the payload.
IMPORTANT: keep these ids stable, they are on-disk values.
"""

from __future__ import annotations

import zlib

from mass_replacer.core.codec_gzip import CodecGzip
from mass_replacer.core.codec_raw import CodecRaw
from mass_replacer.core.codec_zlib import CodecZlib
from mass_replacer.errors import CorruptChunk, UnsupportedCompression

SCHEME_GZIP = 1
SCHEME_ZLIB = 2
SCHEME_NONE = 3
SCHEME_CUSTOM = 127

# payload lives in an external c.<x>.<z>.mcc file next to the region
F_EXTERNAL = 0x80

SCHEME_TO_NAME: dict[int, str] = {
    SCHEME_GZIP: "gzip",
    SCHEME_ZLIB: "zlib",
    SCHEME_NONE: "none",
    SCHEME_CUSTOM: "custom",
}
NAME_TO_SCHEME: dict[str, int] = {v: k for k, v in SCHEME_TO_NAME.items()}

_CODECS = {
    SCHEME_GZIP: CodecGzip(),
    SCHEME_ZLIB: CodecZlib(),
    SCHEME_NONE: CodecRaw(),
}


def scheme_name(scheme: int) -> str:
    name = SCHEME_TO_NAME.get(scheme & ~F_EXTERNAL, f"unknown({scheme & ~F_EXTERNAL})")
    return f"{name}+external" if scheme & F_EXTERNAL else name


def parse_scheme(name: str) -> int:
    """Map a user-facing scheme name (gzip, zlib, none) to its marker byte."""
    key = name.strip().lower()
    scheme = NAME_TO_SCHEME.get(key)
    if scheme is None or scheme not in _CODECS:
        raise ValueError(f"schema di compressione non supportato: {name!r} (ammessi: gzip, zlib, none)")
    return scheme


def _codec_for(scheme: int):
    if scheme & F_EXTERNAL:
        raise UnsupportedCompression(f"payload esterno (.mcc) non supportato: {scheme_name(scheme)}")
    codec = _CODECS.get(scheme)
    if codec is None:
        raise UnsupportedCompression(f"schema di compressione non supportato: {scheme_name(scheme)}")
    return codec


def decompress(data: bytes, scheme: int) -> bytes:
    codec = _codec_for(scheme)
    try:
        return codec.decompress(data)
    except (OSError, EOFError, zlib.error, ValueError) as e:
        raise CorruptChunk(f"decompressione {scheme_name(scheme)} fallita: {e}") from e


def compress(data: bytes, scheme: int) -> bytes:
    return _codec_for(scheme).compress(data)
