#!/usr/bin/env python3
"""End-to-end tests driving the interactive loop through a pty"""

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
MAIN = ROOT / "src" / "main.py"
PROMPT = "$ "

# Try to import pexpect
try:
    import pexpect
    HAS_PEXPECT = True
except ImportError:
    HAS_PEXPECT = False
    pytestmark = pytest.mark.skip(reason="pexpect not installed")


def spawn(cwd: Path, home: Path, *args: str) -> "pexpect.spawn":
    env = dict(os.environ, HOME=str(home))
    env.pop("TINYSH_PROMPT", None)
    env.pop("TINYSH_DEBUG", None)
    return pexpect.spawn(
        sys.executable, [str(MAIN), *args], timeout=5, cwd=str(cwd), env=env, encoding="utf-8"
    )


@pytest.fixture()
def dirs(tmp_path):
    work = tmp_path / "work"
    home = tmp_path / "home"
    work.mkdir()
    home.mkdir()
    return work, home


@pytest.mark.skipif(not HAS_PEXPECT, reason="requires pexpect")
class TestInteractiveLoop:
    """Drive tinysh the way a user at a terminal would"""

    def test_exit_code_is_process_status(self, dirs):
        child = spawn(*dirs)
        try:
            child.expect_exact(PROMPT)
            child.sendline("exit 3")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 3
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_cd_home_then_pwd(self, dirs):
        work, home = dirs
        child = spawn(work, home)
        try:
            child.expect_exact(PROMPT)
            child.sendline("cd ~")
            child.expect_exact(PROMPT)
            child.sendline("pwd")
            child.expect_exact(os.path.realpath(home))
            child.expect_exact(PROMPT)
            child.sendline("exit 0")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_command_not_found_continues(self, dirs):
        child = spawn(*dirs)
        try:
            child.expect_exact(PROMPT)
            child.sendline("nosuchcmd")
            child.expect_exact("nosuchcmd: command not found")
            child.expect_exact(PROMPT)
            child.sendline("exit 1")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 1
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_external_output_redirected(self, dirs):
        work, home = dirs
        child = spawn(work, home)
        try:
            child.expect_exact(PROMPT)
            child.sendline("ls / > listing.txt")
            child.expect_exact(PROMPT)
            child.sendline("exit")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
            assert "tmp" in (work / "listing.txt").read_text().split()
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_ctrl_d_exits(self, dirs):
        child = spawn(*dirs)
        try:
            child.expect_exact(PROMPT)
            child.sendcontrol("d")  # Send EOF
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_ctrl_c_continues(self, dirs):
        child = spawn(*dirs)
        try:
            child.expect_exact(PROMPT)
            child.sendcontrol("c")  # Send SIGINT
            child.expect_exact(PROMPT)  # Should prompt again
            child.sendline("exit 0")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_ctrl_c_interrupts_running_command(self, dirs):
        child = spawn(*dirs)
        try:
            child.expect_exact(PROMPT)
            child.sendline("sleep 5")
            child.expect_exact("sleep 5")  # wait for the line to be echoed
            child.sendcontrol("c")  # SIGINT while the child runs
            child.expect_exact(PROMPT, timeout=3)
            child.sendline("echo still here")
            child.expect_exact("still here")
            child.expect_exact(PROMPT)
            child.sendline("exit 0")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
        finally:
            if child.isalive():
                child.terminate(force=True)

    def test_custom_prompt(self, dirs):
        child = spawn(*dirs, "--prompt", "tinysh> ")
        try:
            child.expect_exact("tinysh> ")
            child.sendline("echo 'a  b'")
            child.expect_exact("a  b")
            child.expect_exact("tinysh> ")
            child.sendline("exit")
            child.expect(pexpect.EOF)
            child.close()
            assert child.exitstatus == 0
        finally:
            if child.isalive():
                child.terminate(force=True)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
