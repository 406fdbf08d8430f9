from __future__ import annotations

import gzip
import zlib

import pytest

from mass_replacer.core.compression import (
    F_EXTERNAL,
    SCHEME_CUSTOM,
    SCHEME_GZIP,
    SCHEME_NONE,
    SCHEME_ZLIB,
    compress,
    decompress,
    parse_scheme,
    scheme_name,
)
from mass_replacer.errors import CorruptChunk, UnsupportedCompression

DATA = b"\x0a\x00\x00" + b"minecraft:stone " * 200 + b"\x00"


@pytest.mark.parametrize("scheme", [SCHEME_GZIP, SCHEME_ZLIB, SCHEME_NONE])
def test_roundtrip(scheme: int) -> None:
    assert decompress(compress(DATA, scheme), scheme) == DATA


def test_wire_formats_match_stdlib() -> None:
    assert zlib.decompress(compress(DATA, SCHEME_ZLIB)) == DATA
    assert gzip.decompress(compress(DATA, SCHEME_GZIP)) == DATA
    assert compress(DATA, SCHEME_NONE) == DATA
    # payloads written by other tools decode too
    assert decompress(zlib.compress(DATA, 9), SCHEME_ZLIB) == DATA
    assert decompress(gzip.compress(DATA), SCHEME_GZIP) == DATA


def test_gzip_is_deterministic() -> None:
    assert compress(DATA, SCHEME_GZIP) == compress(DATA, SCHEME_GZIP)


@pytest.mark.parametrize("scheme", [SCHEME_GZIP, SCHEME_ZLIB])
def test_truncated_stream_is_corrupt(scheme: int) -> None:
    comp = compress(DATA, scheme)
    with pytest.raises(CorruptChunk):
        decompress(comp[: len(comp) // 2], scheme)


@pytest.mark.parametrize("scheme", [SCHEME_GZIP, SCHEME_ZLIB])
def test_garbage_is_corrupt(scheme: int) -> None:
    with pytest.raises(CorruptChunk):
        decompress(b"definitely not compressed", scheme)


@pytest.mark.parametrize("scheme", [0, 4, SCHEME_CUSTOM, F_EXTERNAL | SCHEME_ZLIB])
def test_unsupported_schemes(scheme: int) -> None:
    with pytest.raises(UnsupportedCompression):
        decompress(DATA, scheme)
    with pytest.raises(UnsupportedCompression):
        compress(DATA, scheme)


def test_unsupported_is_a_corrupt_chunk() -> None:
    # a slot with an unknown scheme is skipped like any other unreadable slot
    assert issubclass(UnsupportedCompression, CorruptChunk)


def test_scheme_names() -> None:
    assert scheme_name(SCHEME_GZIP) == "gzip"
    assert scheme_name(SCHEME_ZLIB) == "zlib"
    assert scheme_name(SCHEME_NONE) == "none"
    assert scheme_name(SCHEME_CUSTOM) == "custom"
    assert scheme_name(F_EXTERNAL | SCHEME_ZLIB) == "zlib+external"
    assert scheme_name(9) == "unknown(9)"


def test_parse_scheme() -> None:
    assert parse_scheme("gzip") == SCHEME_GZIP
    assert parse_scheme(" ZLIB ") == SCHEME_ZLIB
    assert parse_scheme("none") == SCHEME_NONE
    for bad in ("custom", "lz4", ""):
        with pytest.raises(ValueError):
            parse_scheme(bad)
