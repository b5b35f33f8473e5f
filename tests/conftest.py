"""Shared fixtures"""

import subprocess
import sys

import pytest


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has already exited"""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid
