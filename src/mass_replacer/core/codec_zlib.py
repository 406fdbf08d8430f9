from __future__ import annotations

import zlib


class CodecZlib:
    """zlib/DEFLATE chunk codec (scheme 2, the format default)."""

    codec_id: str = "zlib"

    def __init__(self, level: int = 6):
        if not (0 <= level <= 9):
            raise ValueError(f"zlib level must be 0..9, got {level}")
        self.level = level

    def compress(self, data: bytes) -> bytes:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("data must be bytes")
        return zlib.compress(bytes(data), self.level)

    def decompress(self, comp: bytes) -> bytes:
        if not isinstance(comp, (bytes, bytearray)):
            raise TypeError("comp must be bytes")
        d = zlib.decompressobj()
        out = d.decompress(bytes(comp))
        out += d.flush()
        if not d.eof:
            raise zlib.error("stream zlib troncato")
        return out
