from __future__ import annotations

import json
import re
import subprocess
import sys
from pathlib import Path

from mass_replacer.engine.region import read_region
from mass_replacer.replace.palette import palette_names
from regionkit import build_region, chunk_tree, slot_blob

RULES_JSON = json.dumps([{"from": "minecraft:stone", "to": "minecraft:granite"}])


def _run_cli(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    """Run mass-replacer CLI through a python -c wrapper.

    This avoids assuming the console-script entrypoint is installed.
    """
    cmd = [
        sys.executable,
        "-c",
        "from mass_replacer.cli import main; raise SystemExit(main())",
        *args,
    ]
    return subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        text=True,
        capture_output=True,
    )


def _world(root: Path) -> Path:
    build_region(
        root / "region" / "r.0.0.mca",
        {0: slot_blob(chunk_tree([["minecraft:stone", "minecraft:air"]])), 1: slot_blob(chunk_tree([["minecraft:dirt"]]))},
    )
    build_region(root / "DIM-1" / "region" / "r.0.0.mca", {5: slot_blob(chunk_tree([["minecraft:stone"]]))})
    (root / "level.dat").write_bytes(b"\x0a\x00\x00\x00")
    return root


def test_cli_version_smoke() -> None:
    r = _run_cli("--version")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert re.search(r"\d", r.stdout)


def test_cli_world_replace(tmp_path: Path) -> None:
    world = _world(tmp_path / "world")
    out = tmp_path / "out"
    blocks = tmp_path / "blocks.json"
    blocks.write_text(RULES_JSON, encoding="utf-8")

    r = _run_cli("world", "replace", str(world), str(out), "--blocks", str(blocks), "--jobs", "2")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "Replaced total 2 entries" in r.stdout

    region = read_region(out / "region" / "r.0.0.mca")
    assert palette_names(region.chunks[0].tree) == ["minecraft:granite", "minecraft:air"]  # type: ignore[arg-type]
    # source untouched
    region = read_region(world / "region" / "r.0.0.mca")
    assert palette_names(region.chunks[0].tree) == ["minecraft:stone", "minecraft:air"]  # type: ignore[arg-type]


def test_cli_default_blocks_file_in_cwd(tmp_path: Path) -> None:
    world = _world(tmp_path / "world")
    (tmp_path / "blocks.json").write_text(RULES_JSON, encoding="utf-8")

    r = _run_cli("world", "replace", "world", "out", "--dry-run", cwd=tmp_path)
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "Replaced total 2 entries" in r.stdout
    region = read_region(tmp_path / "out" / "region" / "r.0.0.mca")
    assert palette_names(region.chunks[0].tree) == ["minecraft:stone", "minecraft:air"]  # type: ignore[arg-type]
    assert world.is_dir()


def test_cli_region_replace_and_verify(tmp_path: Path) -> None:
    p = _world(tmp_path / "world") / "region" / "r.0.0.mca"

    r = _run_cli("region", "replace", str(p), "--blocks", RULES_JSON, "--compression", "gzip")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "Replaced total 1 entries" in r.stdout

    r = _run_cli("region", "verify", str(p), "--full")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "OK" in r.stdout

    r = _run_cli("region", "verify", str(p), "--full", "--json")
    assert r.returncode == 0, (r.stdout, r.stderr)
    obj = json.loads(r.stdout)
    assert obj["schema"] == "mass-replacer.verify.v1"
    assert obj["ok"] is True
    assert obj["chunks"] == 2
    assert obj["decoded"] == 2


def test_cli_verify_broken_region_exit_10(tmp_path: Path) -> None:
    p = build_region(tmp_path / "r.0.0.mca", {0: b"\x00\x00\x00\x04\x02bad"})

    r = _run_cli("region", "verify", str(p), "--full")
    assert r.returncode == 10
    assert "[mass-replacer]" in r.stderr

    r = _run_cli("region", "verify", str(p), "--full", "--json")
    assert r.returncode == 10
    obj = json.loads(r.stdout)
    assert obj["ok"] is False
    assert obj["failures"][0]["slot"] == 0


def test_cli_unreadable_region_exit_12(tmp_path: Path) -> None:
    p = tmp_path / "r.0.0.mca"
    p.write_bytes(b"\x00" * 10)

    r = _run_cli("region", "replace", str(p), "--blocks", RULES_JSON)
    assert r.returncode == 12
    assert "unreadable_container" in r.stderr

    r = _run_cli("region", "verify", str(p))
    assert r.returncode == 12
    assert "[mass-replacer]" in r.stderr


def test_cli_rules_validate(tmp_path: Path) -> None:
    r = _run_cli("rules", "validate", '[{"from": "a", "to": "b"}, {"from": "c"}]')
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert "1/2" in r.stdout


def test_cli_bad_rules_exit_2(tmp_path: Path) -> None:
    r = _run_cli("rules", "validate", "{}")
    assert r.returncode == 2
    assert "[mass-replacer]" in r.stderr

    r = _run_cli("rules", "validate", str(tmp_path / "missing.json"))
    assert r.returncode == 2

    world = _world(tmp_path / "world")
    r = _run_cli("world", "replace", str(world), str(tmp_path / "out"), "--blocks", str(tmp_path / "missing.json"))
    assert r.returncode == 2
    assert not (tmp_path / "out").exists()


def test_cli_bad_world_exit_2(tmp_path: Path) -> None:
    r = _run_cli("world", "replace", str(tmp_path / "nope"), str(tmp_path / "out"), "--blocks", RULES_JSON)
    assert r.returncode == 2
    assert "[mass-replacer]" in r.stderr
