from __future__ import annotations

import ast
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

PACKAGE_ROOT = "mass_replacer"

# Dependency direction, lowest first. A module may import modules of its own
# rank or lower, never higher.
#
# errors is shared by everybody. The rules loader and world discovery sit above
# the substitution engine and the region codec; replacer/verify orchestrate;
# the CLI is the only entrypoint.
LAYERS: tuple[tuple[str, ...], ...] = (
    ("mass_replacer.errors",),
    ("mass_replacer.core",),
    ("mass_replacer.engine",),
    ("mass_replacer.replace",),
    ("mass_replacer.rules", "mass_replacer.discovery"),
    ("mass_replacer.replacer", "mass_replacer.verify"),
    ("mass_replacer.cli",),
)


@dataclass(frozen=True)
class ImportEdge:
    src: str
    dst: str
    file: Path
    lineno: int


def _rank(mod: str) -> int | None:
    for rank, prefixes in enumerate(LAYERS):
        if any(mod == p or mod.startswith(p + ".") for p in prefixes):
            return rank
    return None


def _module_name(src_dir: Path, py: Path) -> str:
    parts = list(py.relative_to(src_dir).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def _iter_edges(src_dir: Path) -> Iterator[ImportEdge]:
    for py in sorted((src_dir / PACKAGE_ROOT).rglob("*.py")):
        mod = _module_name(src_dir, py)
        tree = ast.parse(py.read_text(encoding="utf-8"), filename=str(py))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                targets = [a.name for a in node.names]
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                targets = [node.module]
            else:
                continue
            for dst in targets:
                if dst == PACKAGE_ROOT or dst.startswith(PACKAGE_ROOT + "."):
                    yield ImportEdge(src=mod, dst=dst, file=py, lineno=node.lineno)


def _src_dir() -> Path:
    src_dir = Path(__file__).resolve().parents[1] / "src"
    if not src_dir.is_dir():
        raise AssertionError(f"Expected src/ directory at: {src_dir}")
    return src_dir


def test_every_module_has_a_layer() -> None:
    src_dir = _src_dir()
    modules = {_module_name(src_dir, py) for py in (src_dir / PACKAGE_ROOT).rglob("*.py")}
    unranked = sorted(m for m in modules if _rank(m) is None)
    assert not unranked, f"Modules missing from LAYERS: {unranked}"


def test_imports_never_point_upwards() -> None:
    violations: list[ImportEdge] = []
    for edge in _iter_edges(_src_dir()):
        src_rank, dst_rank = _rank(edge.src), _rank(edge.dst)
        if src_rank is not None and dst_rank is not None and dst_rank > src_rank:
            violations.append(edge)

    if violations:
        lines = ["Forbidden imports detected (lower layer -> higher layer):"]
        for v in violations:
            lines.append(f"  {v.file}:{v.lineno}  {v.src}  ->  {v.dst}")
        lines.append("")
        lines.append("Fix: move the logic down, or invert the dependency.")
        raise AssertionError("\n".join(lines))


def test_no_relative_imports() -> None:
    src_dir = _src_dir()
    for py in (src_dir / PACKAGE_ROOT).rglob("*.py"):
        tree = ast.parse(py.read_text(encoding="utf-8"), filename=str(py))
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom):
                assert node.level == 0, f"{py}:{node.lineno}: relative import"
