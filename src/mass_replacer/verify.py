"""Region file verification.

Light (default): header only. Every populated slot must point past the header,
inside the file, and no two slots may share a sector.

Full: light checks, plus every slot is decompressed and decoded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mass_replacer.engine.region import HEADER_BYTES, HEADER_SECTORS, parse_header, read_region
from mass_replacer.engine.sectors import SECTOR_BYTES, sectors_for
from mass_replacer.errors import Failure, UnreadableContainer


@dataclass
class VerifyReport:
    path: Path
    chunks: int = 0
    decoded: int | None = None
    failures: list[Failure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _header_failures(path: Path, data: bytes) -> tuple[int, list[Failure]]:
    locations, _ = parse_header(data)
    file_sectors = sectors_for(len(data))
    owner: dict[int, int] = {}
    failures: list[Failure] = []
    chunks = 0

    for idx, entry in enumerate(locations):
        if entry == 0:
            continue
        chunks += 1
        offset, count = entry >> 8, entry & 0xFF
        if count == 0:
            failures.append(Failure("corrupt_chunk", path, f"sector_count 0 (offset {offset})", idx))
            continue
        if offset < HEADER_SECTORS:
            failures.append(Failure("corrupt_chunk", path, f"sector_offset {offset} dentro l'header", idx))
            continue
        if offset + count > file_sectors:
            failures.append(
                Failure("corrupt_chunk", path, f"settori {offset}..{offset + count - 1} oltre la fine del file", idx)
            )
        for s in range(offset, offset + count):
            other = owner.get(s)
            if other is not None:
                failures.append(Failure("corrupt_chunk", path, f"settore {s} condiviso con slot {other}", idx))
                break
            owner[s] = idx
    return chunks, failures


def verify_region_file(path: Path | str, *, full: bool = False) -> VerifyReport:
    """Check one region file. Raises UnreadableContainer if it cannot be read at all."""
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise UnreadableContainer(f"{p}: lettura fallita: {e}") from e

    report = VerifyReport(path=p)
    if not data:
        return report
    if len(data) < HEADER_BYTES:
        raise UnreadableContainer(f"{p}: header incompleto ({len(data)} byte, attesi {HEADER_BYTES})")
    if len(data) % SECTOR_BYTES:
        report.failures.append(
            Failure("unaligned_file", p, f"dimensione {len(data)} non multipla di {SECTOR_BYTES}")
        )

    report.chunks, header_failures = _header_failures(p, data)
    report.failures.extend(header_failures)

    if full:
        region = read_region(p)
        report.decoded = sum(1 for rec in region.chunks.values() if rec.decoded)
        seen = {f.slot for f in report.failures if f.slot is not None}
        for f in region.failures:
            if f.slot not in seen:
                report.failures.append(f)
    return report
