from __future__ import annotations


class CodecRaw:
    """
    Codec identity: scheme 3 (chunk stored uncompressed).
    """

    codec_id: str = "none"

    def compress(self, data: bytes) -> bytes:
        return bytes(data)

    def decompress(self, data: bytes) -> bytes:
        return bytes(data)
