"""Region/world replacement runs (orchestration layer).

One region file = one unit of work: read fully, mutate fully, write fully. Files
share no state, so a world run can spread them over a thread pool; results come
back in path order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from mass_replacer.discovery import copy_world, find_region_files
from mass_replacer.engine.region import read_region, write_region
from mass_replacer.errors import EXIT_OK, Failure, UnreadableContainer, UnwritableContainer
from mass_replacer.replace.palette import Rule, applicable_rules, apply_rules

logger = logging.getLogger(__name__)


@dataclass
class RegionResult:
    path: Path
    matches: int = 0
    chunks_total: int = 0
    chunks_changed: int = 0
    written: bool = False
    failures: list[Failure] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return any(f.slot is None for f in self.failures)


@dataclass
class WorldResult:
    files: list[RegionResult] = field(default_factory=list)

    @property
    def total_matches(self) -> int:
        return sum(r.matches for r in self.files)

    @property
    def failures(self) -> list[Failure]:
        return [f for r in self.files for f in r.failures]

    @property
    def exit_code(self) -> int:
        """Worst file-level failure, or 0. Slot-level warnings do not fail the run."""
        codes = [f.exit_code for f in self.failures if f.slot is None]
        return max(codes) if codes else EXIT_OK


def replace_in_region(
    path: Path | str,
    rules: Sequence[Rule | None],
    *,
    scheme_override: int | None = None,
    dry_run: bool = False,
    log: logging.Logger | None = None,
) -> RegionResult:
    """Apply the rules to every chunk of one region file and write it back in place.

    Never raises MassReplacerError: file-level failures are returned on the result.
    """
    log = log or logger
    p = Path(path)
    result = RegionResult(path=p)
    log.info("Trying to replace blocks in %s...", p.name)

    try:
        region = read_region(p, log=log)
    except UnreadableContainer as e:
        log.error("%s: %s", p.name, e)
        result.failures.append(Failure.from_error(e, p))
        return result

    result.chunks_total = len(region.chunks)
    result.failures.extend(region.failures)

    per_slot: dict[int, int] = {}
    active = applicable_rules(rules)
    if active:
        for rec in region.iter_decoded():
            assert rec.tree is not None
            _, n = apply_rules(rec.tree, active)
            if n:
                region.mark_dirty(rec.index)
                per_slot[rec.index] = n

    if per_slot and not dry_run:
        try:
            slot_failures = write_region(p, region, scheme_override=scheme_override, log=log)
        except UnwritableContainer as e:
            log.error("%s: %s", p.name, e)
            result.failures.append(Failure.from_error(e, p))
            return result
        result.failures.extend(slot_failures)
        # slots that could not be re-encoded kept their old bytes: their matches never reached the disk
        for f in slot_failures:
            if f.slot is not None:
                per_slot.pop(f.slot, None)
        result.written = True

    result.matches = sum(per_slot.values())
    result.chunks_changed = len(per_slot)

    log.info("%s: replaced %d entries", p.name, result.matches)
    return result


def replace_in_files(
    files: Sequence[Path],
    rules: Sequence[Rule | None],
    *,
    jobs: int = 1,
    scheme_override: int | None = None,
    dry_run: bool = False,
    log: logging.Logger | None = None,
) -> WorldResult:
    log = log or logger
    jobs = max(1, int(jobs))

    def _one(p: Path) -> RegionResult:
        return replace_in_region(p, rules, scheme_override=scheme_override, dry_run=dry_run, log=log)

    if jobs > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as ex:
            results = list(ex.map(_one, files))
    else:
        results = [_one(p) for p in files]
    return WorldResult(files=results)


def replace_in_world(
    world: Path | str,
    output: Path | str,
    rules: Sequence[Rule | None],
    *,
    jobs: int = 1,
    scheme_override: int | None = None,
    copy: bool = True,
    dry_run: bool = False,
    log: logging.Logger | None = None,
) -> WorldResult:
    """Copy ``world`` to ``output`` (unless copy=False) and edit every region file of the copy.

    Raises UsageError for bad directories; per-file problems end up on the result.
    """
    log = log or logger
    out = Path(output)
    if copy:
        copy_world(Path(world), out, log=log)
    log.info("Blocks to replace: %d", len(applicable_rules(rules)))
    files = find_region_files(out, log=log)
    res = replace_in_files(files, rules, jobs=jobs, scheme_override=scheme_override, dry_run=dry_run, log=log)
    log.info("Replaced total %d entries", res.total_matches)
    return res
