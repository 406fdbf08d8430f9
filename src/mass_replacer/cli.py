"""mass-replacer CLI.

This is the stable CLI entrypoint (console-script: ``mass-replacer``).

  mass-replacer world replace WORLD OUT [--blocks blocks.json] [--jobs N]
  mass-replacer region replace FILE [--blocks blocks.json]
  mass-replacer region verify FILE [--full] [--json]
  mass-replacer rules validate [FILE]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mass_replacer.errors import EXIT_GENERIC, EXIT_USAGE, MassReplacerError
from mass_replacer.rules import RULES_FILE_DEFAULT, RulesSpecError, count_applicable, load_rules

COMPRESSION_CHOICES = ("keep", "gzip", "zlib", "none")
VERIFY_JSON_SCHEMA = "mass-replacer.verify.v1"


def _pkg_version() -> str:
    try:
        from importlib.metadata import PackageNotFoundError, version

        try:
            return version("mass-replacer")
        except PackageNotFoundError:
            # running from a source checkout without metadata
            return "0+unknown"
    except Exception:
        return "0+unknown"


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--debug", action="store_true", help="Show stack traces on errors")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug-level logging")


def _add_replace_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--blocks",
        default=RULES_FILE_DEFAULT,
        help=f"Rules file: JSON list of {{from, to}} (default: {RULES_FILE_DEFAULT}). Inline JSON allowed.",
    )
    p.add_argument(
        "--compression",
        choices=COMPRESSION_CHOICES,
        default="keep",
        help="Scheme for rewritten chunks (default: keep the scheme each chunk was read with)",
    )
    p.add_argument("--dry-run", action="store_true", help="Count replacements without writing")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _scheme_override(name: str) -> int | None:
    from mass_replacer.core.compression import parse_scheme

    return None if name == "keep" else parse_scheme(name)


def _print_failures(failures) -> None:
    for f in failures:
        where = f" slot {f.slot}" if f.slot is not None else ""
        print(f"[mass-replacer] {f.path.name}{where}: {f.kind}: {f.message}", file=sys.stderr)


def _world_replace(ns: argparse.Namespace) -> int:
    from mass_replacer.replacer import replace_in_world

    rules = load_rules(ns.blocks)
    res = replace_in_world(
        ns.world,
        ns.output,
        rules,
        jobs=ns.jobs,
        scheme_override=_scheme_override(ns.compression),
        copy=not ns.no_copy,
        dry_run=bool(ns.dry_run),
    )
    _print_failures([f for f in res.failures if f.slot is None])
    print(f"Replaced total {res.total_matches} entries")
    return res.exit_code


def _region_replace(ns: argparse.Namespace) -> int:
    from mass_replacer.replacer import replace_in_files

    rules = load_rules(ns.blocks)
    res = replace_in_files(
        [ns.input],
        rules,
        scheme_override=_scheme_override(ns.compression),
        dry_run=bool(ns.dry_run),
    )
    _print_failures([f for f in res.failures if f.slot is None])
    print(f"Replaced total {res.total_matches} entries")
    return res.exit_code


def _print_verify_json(report, *, full: bool) -> None:
    import json

    print(
        json.dumps(
            {
                "schema": VERIFY_JSON_SCHEMA,
                "ok": report.ok,
                "target": str(report.path),
                "full": full,
                "chunks": report.chunks,
                "decoded": report.decoded,
                "failures": [
                    {"slot": f.slot, "kind": f.kind, "message": f.message} for f in report.failures
                ],
                "version": _pkg_version(),
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )
    )


def _region_verify(ns: argparse.Namespace) -> int:
    from mass_replacer.verify import verify_region_file

    report = verify_region_file(ns.input, full=bool(ns.full))
    if ns.json:
        _print_verify_json(report, full=bool(ns.full))
        return 0 if report.ok else EXIT_GENERIC
    if not report.ok:
        _print_failures(report.failures)
        return EXIT_GENERIC
    print("OK")
    return 0


def _rules_validate(ns: argparse.Namespace) -> int:
    rules = load_rules(ns.rules)
    print(f"OK ({count_applicable(rules)}/{len(rules)} rules applicable)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mass-replacer", description="Bulk block palette replacement for Anvil region files"
    )
    p.add_argument("--version", action="version", version=f"mass-replacer {_pkg_version()}")
    sub = p.add_subparsers(dest="cmd", required=True)

    # world ...
    p_world = sub.add_parser("world", help="Whole-world operations")
    sub_world = p_world.add_subparsers(dest="world_cmd", required=True)

    p_wr = sub_world.add_parser("replace", help="Copy WORLD to OUT and replace blocks in every region file of OUT")
    p_wr.add_argument("world", type=Path, help="Source world directory")
    p_wr.add_argument("output", type=Path, help="World output directory")
    _add_replace_args(p_wr)
    p_wr.add_argument("--jobs", type=int, default=1, help="Region files processed in parallel (default: 1)")
    p_wr.add_argument(
        "--no-copy",
        action="store_true",
        help="Do not copy WORLD first: edit the region files already in OUT",
    )
    _add_common_args(p_wr)

    # region ...
    p_region = sub.add_parser("region", help="Single region file operations")
    sub_region = p_region.add_subparsers(dest="region_cmd", required=True)

    p_rr = sub_region.add_parser("replace", help="Replace blocks in one region file, in place")
    p_rr.add_argument("input", type=Path)
    _add_replace_args(p_rr)
    _add_common_args(p_rr)

    p_rv = sub_region.add_parser("verify", help="Verify a region file (header; --full decodes every chunk)")
    p_rv.add_argument("input", type=Path)
    p_rv.add_argument("--full", action="store_true", help="Decompress and decode every chunk")
    p_rv.add_argument("--json", action="store_true", help="Print the report as one JSON object on stdout")
    _add_common_args(p_rv)

    # rules ...
    p_rules = sub.add_parser("rules", help="Rules file operations")
    sub_rules = p_rules.add_subparsers(dest="rules_cmd", required=True)

    p_rlv = sub_rules.add_parser("validate", help="Validate a rules file")
    p_rlv.add_argument("rules", nargs="?", default=RULES_FILE_DEFAULT, help="Rules file (or inline JSON)")
    _add_common_args(p_rlv)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    p = build_parser()
    ns = p.parse_args(argv)
    _setup_logging(bool(getattr(ns, "verbose", False)))

    try:
        if ns.cmd == "world":
            if ns.world_cmd == "replace":
                return _world_replace(ns)
            raise AssertionError("unreachable")

        if ns.cmd == "region":
            if ns.region_cmd == "replace":
                return _region_replace(ns)
            if ns.region_cmd == "verify":
                return _region_verify(ns)
            raise AssertionError("unreachable")

        if ns.cmd == "rules":
            if ns.rules_cmd == "validate":
                return _rules_validate(ns)
            raise AssertionError("unreachable")

        raise AssertionError("unreachable")

    except SystemExit:
        raise
    except RulesSpecError as e:
        # Treat as usage/config error.
        if getattr(ns, "debug", False):
            raise
        print(f"[mass-replacer] {e}", file=sys.stderr)
        return EXIT_USAGE
    except MassReplacerError as e:
        if getattr(ns, "debug", False):
            raise
        print(f"[mass-replacer] {e}", file=sys.stderr)
        return int(getattr(e, "exit_code", EXIT_GENERIC) or EXIT_GENERIC)
    except Exception as e:
        if getattr(ns, "debug", False):
            raise
        print(f"[mass-replacer] error: {e}", file=sys.stderr)
        return EXIT_GENERIC


if __name__ == "__main__":
    raise SystemExit(main())
