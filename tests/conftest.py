import os
import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/ at collection time
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory with HOME pointing at a fresh dir
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("PATH", os.environ.get("PATH", "/usr/bin:/bin"))
    monkeypatch.delenv("TINYSH_PROMPT", raising=False)
    monkeypatch.delenv("TINYSH_DEBUG", raising=False)
    return work, home


@pytest.fixture()
def state(sandbox):
    from ops import ShellState
    work, _ = sandbox
    return ShellState.initial(str(work))


@pytest.fixture()
def bin_dir(tmp_path, monkeypatch):
    """A private PATH entry holding small test executables."""
    d = tmp_path / "bin"
    d.mkdir()
    monkeypatch.setenv("PATH", f"{d}{os.pathsep}{os.environ.get('PATH', '')}")
    return d


def make_script(directory: Path, name: str, body: str, mode: int = 0o755) -> Path:
    script = directory / name
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(mode)
    return script
