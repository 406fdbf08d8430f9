"""Region container codec (Anvil ``r.<x>.<z>.mca`` files).

Layout
------
  [0, 4096)       location table: 1024 x u32 BE = sector_offset(24) << 8 | sector_count(8)
  [4096, 8192)    timestamp table: 1024 x u32 BE (seconds)
  [8192, ...)     slots, each starting on a sector boundary:
                    length(u32 BE, counts the scheme byte) | scheme(u8) | payload | zero padding

Slot index for local chunk (x, z), 0 <= x, z < 32, is ``x + 32 * z``. An all-zero
location entry means the chunk is absent.

Failure policy
--------------
- A slot that cannot be located, decompressed or decoded is logged, recorded on the
  region and left untouched: its bytes are never rewritten.
- Only chunks whose tree was mutated (``dirty``) are re-encoded on write.
- New payload sizes are all computed before any sector is allocated.
"""

from __future__ import annotations

import logging
import re
import struct
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from mass_replacer.core.compression import compress, decompress, scheme_name
from mass_replacer.core.tag_codec import decode_named, encode
from mass_replacer.core.tags import Tag
from mass_replacer.engine.sectors import SECTOR_BYTES, SectorAllocator, sectors_for
from mass_replacer.errors import (
    CorruptChunk,
    Failure,
    MalformedTag,
    MassReplacerError,
    UnreadableContainer,
    UnwritableContainer,
)

logger = logging.getLogger(__name__)

REGION_SIDE = 32
SLOT_COUNT = REGION_SIDE * REGION_SIDE
HEADER_SECTORS = 2
HEADER_BYTES = HEADER_SECTORS * SECTOR_BYTES
MAX_SECTOR_COUNT = 0xFF
MAX_SECTOR_OFFSET = 0xFFFFFF
REGION_SUFFIX = ".mca"

_REGION_NAME_RE = re.compile(r"^r\.(-?\d+)\.(-?\d+)\.mca$")


def parse_region_coords(path: Path | str) -> tuple[int, int] | None:
    """``r.-1.2.mca`` -> (-1, 2); None if the name does not follow the pattern."""
    m = _REGION_NAME_RE.match(Path(path).name)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def slot_index(x: int, z: int) -> int:
    if not (0 <= x < REGION_SIDE and 0 <= z < REGION_SIDE):
        raise ValueError(f"coordinate locali fuori range: ({x}, {z})")
    return x + z * REGION_SIDE


def slot_xz(index: int) -> tuple[int, int]:
    if not (0 <= index < SLOT_COUNT):
        raise ValueError(f"slot fuori range: {index}")
    return index % REGION_SIDE, index // REGION_SIDE


@dataclass
class ChunkRecord:
    """One populated slot.

    ``raw`` holds the slot bytes as found on disk (length + scheme + payload, no
    padding). ``tree`` is None when the slot could not be decoded; ``error`` says why.
    """

    index: int
    sector_offset: int
    sector_count: int
    timestamp: int
    raw: bytes = b""
    scheme: int | None = None
    root_name: str = ""
    tree: Tag | None = None
    error: MassReplacerError | None = None
    dirty: bool = False

    @property
    def x(self) -> int:
        return slot_xz(self.index)[0]

    @property
    def z(self) -> int:
        return slot_xz(self.index)[1]

    @property
    def decoded(self) -> bool:
        return self.tree is not None


@dataclass
class Region:
    path: Path
    coords: tuple[int, int] | None
    size: int
    chunks: dict[int, ChunkRecord] = field(default_factory=dict)
    failures: list[Failure] = field(default_factory=list)

    def get(self, x: int, z: int) -> ChunkRecord | None:
        return self.chunks.get(slot_index(x, z))

    def chunk_pos(self, index: int) -> tuple[int, int] | None:
        """Absolute chunk coordinates of a slot, if the region coordinates are known."""
        if self.coords is None:
            return None
        x, z = slot_xz(index)
        return self.coords[0] * REGION_SIDE + x, self.coords[1] * REGION_SIDE + z

    def describe(self, index: int) -> str:
        x, z = slot_xz(index)
        pos = self.chunk_pos(index)
        where = f"slot {index} (x={x}, z={z})"
        if pos is not None:
            where += f" chunk {pos[0]},{pos[1]}"
        return where

    def iter_decoded(self) -> Iterator[ChunkRecord]:
        for idx in sorted(self.chunks):
            rec = self.chunks[idx]
            if rec.decoded:
                yield rec

    def mark_dirty(self, index: int) -> None:
        rec = self.chunks[index]
        if not rec.decoded:
            raise ValueError(f"slot {index} non decodificato: non può essere riscritto")
        rec.dirty = True


# -------------------
# Read
# -------------------
def parse_header(data: bytes) -> tuple[tuple[int, ...], tuple[int, ...]]:
    """Return (location entries, timestamps) from the first 8192 bytes."""
    if len(data) < HEADER_BYTES:
        raise UnreadableContainer(f"header incompleto ({len(data)} byte, attesi {HEADER_BYTES})")
    locations = struct.unpack_from(f">{SLOT_COUNT}I", data, 0)
    timestamps = struct.unpack_from(f">{SLOT_COUNT}I", data, SECTOR_BYTES)
    return locations, timestamps


def _slot_bytes(data: bytes, offset: int, count: int) -> bytes:
    if count == 0:
        raise CorruptChunk(f"sector_count 0 con offset {offset}")
    if offset < HEADER_SECTORS:
        raise CorruptChunk(f"sector_offset {offset} dentro l'header")
    start = offset * SECTOR_BYTES
    if start + 5 > len(data):
        raise CorruptChunk(f"slot oltre la fine del file (offset {offset}, file {len(data)} byte)")
    (length,) = struct.unpack_from(">I", data, start)
    if length == 0:
        raise CorruptChunk("length 0")
    if 4 + length > count * SECTOR_BYTES:
        raise CorruptChunk(f"length {length} eccede l'allocazione di {count} settori")
    end = start + 4 + length
    if end > len(data):
        raise CorruptChunk(f"payload troncato: attesi {length} byte, file termina a {len(data)}")
    return bytes(data[start:end])


def _decode_record(rec: ChunkRecord) -> None:
    rec.scheme = rec.raw[4]
    nbt = decompress(rec.raw[5:], rec.scheme)
    rec.root_name, rec.tree = decode_named(nbt)


def read_region(path: Path | str, *, log: logging.Logger | None = None) -> Region:
    """Read a whole region file and decode every populated slot.

    Raises UnreadableContainer if the file cannot be read or its header is incomplete.
    Slot-level failures are returned on ``region.failures``.
    """
    log = log or logger
    p = Path(path)
    try:
        with p.open("rb") as fp:
            data = fp.read()
    except OSError as e:
        raise UnreadableContainer(f"{p}: lettura fallita: {e}") from e

    region = Region(path=p, coords=parse_region_coords(p), size=len(data))
    if not data:
        # zero-length region files are written by the game for empty areas
        return region
    if len(data) < HEADER_BYTES:
        raise UnreadableContainer(f"{p}: header incompleto ({len(data)} byte, attesi {HEADER_BYTES})")

    locations, timestamps = parse_header(data)

    for idx, entry in enumerate(locations):
        if entry == 0:
            continue
        rec = ChunkRecord(
            index=idx,
            sector_offset=entry >> 8,
            sector_count=entry & 0xFF,
            timestamp=timestamps[idx],
        )
        region.chunks[idx] = rec
        try:
            rec.raw = _slot_bytes(data, rec.sector_offset, rec.sector_count)
            _decode_record(rec)
        except (MalformedTag, CorruptChunk) as e:
            rec.tree = None
            rec.error = e
            region.failures.append(Failure.from_error(e, p, idx))
            log.warning("%s: %s skipped (%s): %s", p.name, region.describe(idx), e.kind, e)

    log.debug(
        "%s: %d chunks, %d decoded, %d skipped",
        p.name,
        len(region.chunks),
        sum(1 for r in region.chunks.values() if r.decoded),
        len(region.failures),
    )
    return region


# -------------------
# Write
# -------------------
@dataclass(frozen=True)
class _Placement:
    rec: ChunkRecord
    blob: bytes
    offset: int
    count: int


def _encode_record(rec: ChunkRecord, scheme: int) -> bytes:
    assert rec.tree is not None
    nbt = encode(rec.tree, rec.root_name)
    comp = compress(nbt, scheme)
    blob = struct.pack(">IB", len(comp) + 1, scheme) + comp
    if sectors_for(len(blob)) > MAX_SECTOR_COUNT:
        raise CorruptChunk(
            f"chunk troppo grande: {len(blob)} byte ({sectors_for(len(blob))} settori, max {MAX_SECTOR_COUNT})"
        )
    return blob


def write_region(
    path: Path | str,
    region: Region,
    *,
    scheme_override: int | None = None,
    now: int | None = None,
    log: logging.Logger | None = None,
) -> list[Failure]:
    """Write every dirty chunk of ``region`` back into the file at ``path``.

    Untouched slots are never written. A dirty chunk that cannot be re-encoded is
    reported (and its original bytes stay in place). Returns the slot failures.
    Raises UnwritableContainer on I/O errors.
    """
    log = log or logger
    p = Path(path)
    failures: list[Failure] = []

    # 1. encode every dirty chunk first: allocation needs all the sizes
    encoded: list[tuple[ChunkRecord, bytes]] = []
    for idx in sorted(region.chunks):
        rec = region.chunks[idx]
        if not (rec.dirty and rec.decoded):
            continue
        scheme = scheme_override if scheme_override is not None else rec.scheme
        try:
            if scheme is None:
                raise CorruptChunk("schema di compressione sconosciuto")
            encoded.append((rec, _encode_record(rec, scheme)))
        except (MalformedTag, CorruptChunk) as e:
            failures.append(Failure.from_error(e, p, idx))
            log.warning("%s: %s not rewritten (%s): %s", p.name, region.describe(idx), e.kind, e)

    if not encoded:
        return failures

    # 2. allocate once. Sectors of every slot that is not rewritten (failed and
    # undecoded ones included) stay reserved, even where damaged files overlap.
    rewritten = {rec.index for rec, _ in encoded}
    alloc = SectorAllocator(sectors_for(region.size), reserved=HEADER_SECTORS)
    for rec in region.chunks.values():
        if rec.index not in rewritten:
            alloc.mark_used(rec.sector_offset, rec.sector_count)

    # in place when the new payload fits its old sectors and none of them is
    # claimed by another slot; its tail sectors are simply never marked
    placements: list[_Placement] = []
    moving: list[tuple[ChunkRecord, bytes]] = []
    for rec, blob in encoded:
        need = sectors_for(len(blob))
        if need <= rec.sector_count and alloc.is_free(rec.sector_offset, need):
            alloc.mark_used(rec.sector_offset, need)
            placements.append(_Placement(rec=rec, blob=blob, offset=rec.sector_offset, count=need))
        else:
            moving.append((rec, blob))

    # the rest: first fit over free sectors, otherwise append
    for rec, blob in moving:
        need = sectors_for(len(blob))
        offset = alloc.allocate(need)
        if offset + need - 1 > MAX_SECTOR_OFFSET:
            raise UnwritableContainer(f"{p}: file troppo grande (offset settore {offset})")
        placements.append(_Placement(rec=rec, blob=blob, offset=offset, count=need))

    # 3. payloads, then both header tables
    stamp = int(time.time()) if now is None else int(now)
    try:
        with p.open("r+b") as fp:
            for pl in placements:
                fp.seek(pl.offset * SECTOR_BYTES)
                fp.write(pl.blob)
                fp.write(bytes(pl.count * SECTOR_BYTES - len(pl.blob)))
            for pl in placements:
                fp.seek(pl.rec.index * 4)
                fp.write(struct.pack(">I", (pl.offset << 8) | pl.count))
                fp.seek(SECTOR_BYTES + pl.rec.index * 4)
                fp.write(struct.pack(">I", stamp & 0xFFFFFFFF))
            fp.flush()
            region.size = max(region.size, fp.seek(0, 2))
    except OSError as e:
        raise UnwritableContainer(f"{p}: scrittura fallita: {e}") from e

    for pl in placements:
        if pl.offset != pl.rec.sector_offset:
            log.debug("%s: %s moved %d -> %d", p.name, region.describe(pl.rec.index), pl.rec.sector_offset, pl.offset)
        pl.rec.sector_offset = pl.offset
        pl.rec.sector_count = pl.count
        pl.rec.timestamp = stamp & 0xFFFFFFFF
        pl.rec.raw = pl.blob
        pl.rec.scheme = pl.blob[4]
        pl.rec.dirty = False

    log.debug(
        "%s: %d chunks rewritten (%s)",
        p.name,
        len(placements),
        ", ".join(sorted({scheme_name(pl.blob[4]) for pl in placements})),
    )
    return failures


def iter_slot_spans(region: Region) -> Iterator[tuple[int, int, int]]:
    """Yield (index, first_sector, sector_count) for every populated slot."""
    for idx in sorted(region.chunks):
        rec = region.chunks[idx]
        yield idx, rec.sector_offset, rec.sector_count
