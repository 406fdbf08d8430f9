#!/usr/bin/env python3
"""Write (or check) docs/exit_codes.md, rendered from mass_replacer.errors."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO = Path(__file__).resolve().parents[1]


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="gen_exit_codes_md")
    ap.add_argument("--out", type=Path, default=REPO / "docs" / "exit_codes.md")
    ap.add_argument("--check", action="store_true", help="exit 1 if the file is missing or stale")
    args = ap.parse_args(argv)

    sys.path.insert(0, str(REPO / "src"))
    from mass_replacer.errors import render_exit_codes_markdown  # noqa: E402

    text = render_exit_codes_markdown()
    out: Path = args.out

    if args.check:
        current = out.read_text(encoding="utf-8") if out.is_file() else None
        if current != text:
            print(f"[mass-replacer] {out} is out of date; rerun without --check", file=sys.stderr)
            return 1
        print(f"[mass-replacer] {out} is up to date")
        return 0

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    print(f"[mass-replacer] wrote {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
