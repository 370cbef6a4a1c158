import importlib.util
import json
import os
import re
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]  # Tests/ -> project root
TOOLS = ROOT / "Tools"

# --------------------------------------------------------------------------------------
# Idea-source marker mapping (objective "ideas" -> plain pytest markers)
# --------------------------------------------------------------------------------------
IDEA_MARKERS = {
    "Capabilities": "capabilities",
    "Failure Modes": "failure_modes",
    "Quality Factors": "quality_factors",
    "Usage Scenarios": "usage_scenarios",
    "Examples": "examples",
    "Example": "examples",
    "Confirm": "confirm",
}


def _sanitize_nodeid(nodeid: str) -> str:
    """Convert pytest nodeid into a filesystem-friendly name (Windows-safe)."""
    s = nodeid.replace("::", "__")
    s = re.sub(r"[^A-Za-z0-9_.-]+", "_", s)
    return s[:180]


# --------------------------------------------------------------------------------------
# Tool selection
# --------------------------------------------------------------------------------------
def resolve_tool_path() -> Path:
    """
    Path to the Prime_Master script under test.

    Resolution order:
      1) Environment variable PRIME_MASTER (absolute or relative to project root)
      2) ../Source_Code/Prime_Master.py
      3) Any Prime_Master*.py found in ../Source_Code
    """
    env = os.environ.get("PRIME_MASTER")
    if env:
        p = Path(env)
        if not p.is_absolute():
            p = (ROOT / p).resolve()
        if p.exists():
            return p
        raise FileNotFoundError(f"PRIME_MASTER points to missing file: {p}")

    p = ROOT / "Source_Code" / "Prime_Master.py"
    if p.exists():
        return p

    sc = ROOT / "Source_Code"
    if sc.exists():
        for p in sorted(sc.glob("Prime_Master*.py")):
            if p.is_file():
                return p

    raise FileNotFoundError(
        "Could not locate Prime_Master script. Set PRIME_MASTER or place it under Source_Code/."
    )


def load_module(name: str, path: Path):
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def tool_path() -> Path:
    return resolve_tool_path()


@pytest.fixture(scope="session")
def pm():
    """The Prime_Master module itself, for driving the core without a subprocess."""
    return load_module("Prime_Master", resolve_tool_path())


@pytest.fixture(scope="session")
def generator():
    return load_module("generate", TOOLS / "generate.py")


# --------------------------------------------------------------------------------------
# Running the CLI
# --------------------------------------------------------------------------------------
@dataclass
class CliRun:
    rc: int
    stdout: str
    stderr: str

    def json(self) -> dict:
        out = self.stdout.strip()
        if not out:
            raise AssertionError(f"Prime_Master produced empty stdout.\nSTDERR:\n{self.stderr}")
        return json.loads(out)


@pytest.fixture
def run_cli(tool_path, tmp_path):
    """Run Prime_Master in a scratch working directory (so ./paths never lands in the repo)."""

    def _run(*args, cwd: Optional[Path] = None, timeout_s: int = 10) -> CliRun:
        cmd = [sys.executable, str(tool_path), *[str(a) for a in args]]
        p = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_s, cwd=str(cwd or tmp_path))
        return CliRun(p.returncode, p.stdout or "", p.stderr or "")

    return _run


# --------------------------------------------------------------------------------------
# Artifact directories
# --------------------------------------------------------------------------------------
@pytest.fixture(scope="session")
def artifacts_run_dir() -> Path:
    """
    One run directory per pytest invocation.

    Layout:
      <project_root>/Test_Artifacts/<timestamp>_<pid>/
    """
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    run_dir = ROOT / "Test_Artifacts" / f"{stamp}_{os.getpid()}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


@pytest.fixture
def artifacts_dir(request, artifacts_run_dir: Path) -> Path:
    test_dir = artifacts_run_dir / _sanitize_nodeid(request.node.nodeid)
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


# --------------------------------------------------------------------------------------
# Checks recorder (per-test PASS/FAIL log + objective metadata)
# --------------------------------------------------------------------------------------
@dataclass
class ChecksRecorder:
    artifacts_dir: Path
    filename: str = "checks.log"
    entries: list[dict] = field(default_factory=list)

    def _write_line(self, line: str) -> None:
        p = self.artifacts_dir / self.filename
        with p.open("a", encoding="utf-8") as f:
            f.write(line)

    def _record(self, status: str, label: str, details: Optional[dict[str, Any]]) -> None:
        self._write_line(f"{status}: {label}\n")
        if details is not None:
            self._write_line(f"      details={json.dumps(details, ensure_ascii=False, default=str)}\n")

    def check(
        self,
        condition: bool,
        label: str,
        details: Optional[dict[str, Any]] = None,
        hard: bool = True,
    ) -> bool:
        """Record PASS/FAIL. If hard=True and condition is False, fail the test."""
        entry: dict[str, Any] = {"label": label, "pass": bool(condition)}
        if details is not None:
            entry["details"] = details
        self.entries.append(entry)
        self._record("PASS" if condition else "FAIL", label, details)

        if hard:
            assert condition, f"{label}: {details}" if details is not None else label
        return bool(condition)

    def note(self, label: str, details: Optional[dict[str, Any]] = None) -> None:
        """Record a non-check observation line."""
        self.entries.append({"label": label, "note": True, "details": details})
        self._record("NOTE", label, details)


@pytest.fixture
def checks(request, artifacts_dir: Path) -> ChecksRecorder:
    """Per-test recorder that also emits objective metadata into the artifacts folder."""
    rec = ChecksRecorder(artifacts_dir=artifacts_dir)

    m = request.node.get_closest_marker("objective")
    obj = {}
    if m:
        obj = {
            "nodeid": request.node.nodeid,
            "id": m.kwargs.get("id"),
            "text": m.kwargs.get("text"),
            "ideas": m.kwargs.get("ideas", []),
        }

    (artifacts_dir / "objective.json").write_text(json.dumps(obj, indent=2), encoding="utf-8")
    rec._write_line(f"=== {obj.get('id')} ===\n{obj.get('text')}\n\n")
    return rec


# --------------------------------------------------------------------------------------
# Collection-time enforcement + objective index
# --------------------------------------------------------------------------------------
def pytest_collection_modifyitems(config, items):
    """Every test must declare exactly one @pytest.mark.objective(...)."""
    missing = []
    multi = []

    for item in items:
        obj_markers = list(item.iter_markers(name="objective"))
        if len(obj_markers) == 0:
            missing.append(item.nodeid)
            continue
        if len(obj_markers) > 1:
            multi.append(item.nodeid)
            continue

        ideas = obj_markers[0].kwargs.get("ideas") or []
        if not isinstance(ideas, list):
            raise pytest.UsageError(
                f"{item.nodeid}: objective(... ideas=...) must be a list of strings"
            )
        # Ideas double as filter tags: -m failure_modes, -m examples, ...
        for idea in ideas:
            tag = IDEA_MARKERS.get(idea)
            if tag and not item.get_closest_marker(tag):
                item.add_marker(getattr(pytest.mark, tag))

    if missing:
        raise pytest.UsageError(
            "These tests are missing @pytest.mark.objective(id=..., text=..., ideas=[...]):\n"
            + "\n".join("  " + x for x in missing)
        )
    if multi:
        raise pytest.UsageError(
            "These tests have more than one @pytest.mark.objective(...). Use exactly one:\n"
            + "\n".join("  " + x for x in multi)
        )


def pytest_collection_finish(session):
    """Write an objectives index file at project root every run."""
    objs = []
    for item in session.items:
        m = item.get_closest_marker("objective")
        if not m:
            continue
        objs.append(
            {
                "nodeid": item.nodeid,
                "objective": {
                    "id": m.kwargs.get("id"),
                    "text": m.kwargs.get("text"),
                    "ideas": m.kwargs.get("ideas", []),
                },
            }
        )

    out_path = Path(str(session.config.rootpath)) / "objectives_index.json"
    out_path.write_text(json.dumps(objs, indent=2), encoding="utf-8")
