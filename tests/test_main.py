from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _run_health_check(extra_env: dict[str, str]) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(ROOT)
    env.update(extra_env)
    return subprocess.run(
        [sys.executable, "-m", "hanna_irc.main", "--health-check"],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=20,
        check=False,
        cwd=ROOT,
    )


def test_health_check_pass() -> None:
    proc = _run_health_check({"IRC_ADDR": "irc.example.net:6697", "IRC_NICK": "Hanna"})
    if proc.returncode != 0:
        raise AssertionError(f"Health check expected exit code 0 got {proc.returncode} output={proc.stdout}")
    assert "Health check passed" in proc.stdout


def test_health_check_fail_on_invalid_port() -> None:
    proc = _run_health_check({"IRC_ADDR": "irc.example.net:99999"})
    if proc.returncode != 1:
        raise AssertionError(f"Health check expected exit code 1 got {proc.returncode} output={proc.stdout}")
    assert "Health check failed" in proc.stdout
