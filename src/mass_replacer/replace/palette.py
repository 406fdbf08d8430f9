"""Block palette substitution.

Path walked inside a chunk tree:

  root{} -> sections[] -> {} -> block_states{} -> palette[] -> {} -> Name""

Every key is optional: a missing key, or a value of an unexpected tag kind, just
means there is nothing to match at that level.

Rules are tested in order against the *current* Name of each palette entry, so a
rule whose ``from`` equals an earlier rule's ``to`` fires again on the same entry
(and counts again).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from mass_replacer.core.tags import (
    Tag,
    TagCompound,
    TagString,
    child_compound,
    child_list,
    child_string,
)

KEY_SECTIONS = "sections"
KEY_BLOCK_STATES = "block_states"
KEY_PALETTE = "palette"
KEY_NAME = "Name"


@dataclass(frozen=True)
class Rule:
    from_: str | None
    to: str | None

    @property
    def applicable(self) -> bool:
        return isinstance(self.from_, str) and bool(self.from_) and isinstance(self.to, str) and bool(self.to)


def applicable_rules(rules: Iterable[Rule | None]) -> list[Rule]:
    return [r for r in rules if r is not None and r.applicable]


def iter_palette_entries(tree: Tag) -> Iterator[TagCompound]:
    """Yield every compound palette entry reachable from a chunk root."""
    sections = child_list(tree, KEY_SECTIONS)
    if sections is None:
        return
    for section in sections.items:
        palette = child_list(child_compound(section, KEY_BLOCK_STATES), KEY_PALETTE)
        if palette is None:
            continue
        for entry in palette.items:
            if isinstance(entry, TagCompound):
                yield entry


def apply_rules(tree: Tag, rules: Sequence[Rule | None]) -> tuple[Tag, int]:
    """Rewrite matching palette names in place. Returns (tree, match_count)."""
    active = applicable_rules(rules)
    if not active:
        return tree, 0

    matches = 0
    for entry in iter_palette_entries(tree):
        name = child_string(entry, KEY_NAME)
        if name is None:
            continue
        for rule in active:
            if name.value == rule.from_:
                name = TagString(rule.to)  # type: ignore[arg-type]
                entry[KEY_NAME] = name
                matches += 1
    return tree, matches


def palette_names(tree: Tag) -> list[str]:
    """Flat list of palette Name values, in traversal order."""
    out: list[str] = []
    for entry in iter_palette_entries(tree):
        name = child_string(entry, KEY_NAME)
        if name is not None:
            out.append(name.value)
    return out
