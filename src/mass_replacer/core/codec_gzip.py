from __future__ import annotations

import gzip


class CodecGzip:
    """gzip chunk codec (scheme 1).

    mtime is pinned to 0 so that the same tree always compresses to the same bytes.
    """

    codec_id: str = "gzip"

    def __init__(self, level: int = 6):
        if not (0 <= level <= 9):
            raise ValueError(f"gzip level must be 0..9, got {level}")
        self.level = level

    def compress(self, data: bytes) -> bytes:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("data must be bytes")
        return gzip.compress(bytes(data), compresslevel=self.level, mtime=0)

    def decompress(self, comp: bytes) -> bytes:
        if not isinstance(comp, (bytes, bytearray)):
            raise TypeError("comp must be bytes")
        return gzip.decompress(bytes(comp))
