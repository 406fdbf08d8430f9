"""Typed errors for mass-replacer.

Single source of truth for exit codes lives here.

Policy:
- Errors are small and boring.
- Slot-level errors (MalformedTag, InvalidEncoding, CorruptChunk) never abort a file:
  the slot is skipped and its bytes are preserved.
- File-level errors (UnreadableContainer, UnwritableContainer) abort one file only.
- The CLI maps errors to stable exit codes (see EXIT_* constants).
- docs/exit_codes.md is generated from this module (scripts/gen_exit_codes_md.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

# -------------------------
# Exit codes (single source)
# -------------------------

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_GENERIC = 10
EXIT_UNREADABLE = 12
EXIT_UNWRITABLE = 13


@dataclass(frozen=True, slots=True)
class ExitCodeInfo:
    code: int
    name: str
    description: str


EXIT_CODES: tuple[ExitCodeInfo, ...] = (
    ExitCodeInfo(EXIT_OK, "OK", "Success"),
    ExitCodeInfo(EXIT_USAGE, "USAGE", "Usage/config error (invalid args, invalid rules file, etc.)"),
    ExitCodeInfo(EXIT_GENERIC, "GENERIC", "Generic failure (corrupt chunk, malformed tag, unexpected error)"),
    ExitCodeInfo(EXIT_UNREADABLE, "UNREADABLE_CONTAINER", "Region file could not be opened or its header parsed"),
    ExitCodeInfo(EXIT_UNWRITABLE, "UNWRITABLE_CONTAINER", "Region file could not be written back"),
)

_EXIT_CODE_BY_CODE: dict[int, ExitCodeInfo] = {e.code: e for e in EXIT_CODES}


def exit_code_info(code: int) -> ExitCodeInfo | None:
    return _EXIT_CODE_BY_CODE.get(int(code))


def render_exit_codes_markdown() -> str:
    """Render docs/exit_codes.md content."""
    lines: list[str] = []
    lines.append("# Exit codes\n")
    lines.append("> GENERATED FILE — do not edit manually.\n")
    lines.append("> Source of truth: `src/mass_replacer/errors.py` (EXIT_CODES).\n")
    lines.append("> Regenerate: `python scripts/gen_exit_codes_md.py`.\n\n")
    lines.append("These are the CLI exit codes you can rely on.\n\n")
    lines.append("| Code | Name | Meaning |\n")
    lines.append("|---:|---|---|\n")
    for e in sorted(EXIT_CODES, key=lambda x: x.code):
        lines.append(f"| {e.code} | `{e.name}` | {e.description} |\n")
    lines.append("\n## Notes\n")
    lines.append("- Most internal errors extend `MassReplacerError` and carry an `exit_code`.\n")
    lines.append("- `--debug` re-raises errors to show full stack traces.\n")
    lines.append(
        "- A run over a world returns the exit code of the worst per-file failure, "
        "or 0 when every file was written.\n"
    )
    return "".join(lines)


# ---------------
# Typed exceptions
# ---------------


class MassReplacerError(Exception):
    """Base error for mass-replacer."""

    exit_code: int = EXIT_GENERIC
    kind: str = "error"


class UsageError(MassReplacerError):
    exit_code = EXIT_USAGE
    kind = "usage"


class MalformedTag(MassReplacerError):
    kind = "malformed_tag"


class InvalidEncoding(MalformedTag):
    kind = "invalid_encoding"


class CorruptChunk(MassReplacerError):
    kind = "corrupt_chunk"


class UnsupportedCompression(CorruptChunk):
    kind = "unsupported_compression"


class UnreadableContainer(MassReplacerError):
    exit_code = EXIT_UNREADABLE
    kind = "unreadable_container"


class UnwritableContainer(MassReplacerError):
    exit_code = EXIT_UNWRITABLE
    kind = "unwritable_container"


# ------------------
# Structured results
# ------------------


@dataclass(frozen=True, slots=True)
class Failure:
    """One reported condition: what went wrong, where, and why.

    ``slot`` is the region slot index (0..1023) for slot-level failures, None for
    file-level ones.
    """

    kind: str
    path: Path
    message: str
    slot: int | None = None

    @classmethod
    def from_error(cls, err: BaseException, path: Path, slot: int | None = None) -> "Failure":
        kind = getattr(err, "kind", None) or type(err).__name__
        return cls(kind=str(kind), path=Path(path), message=str(err), slot=slot)

    @property
    def exit_code(self) -> int:
        if self.kind == UnreadableContainer.kind:
            return EXIT_UNREADABLE
        if self.kind == UnwritableContainer.kind:
            return EXIT_UNWRITABLE
        return EXIT_GENERIC
