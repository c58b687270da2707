"""Pytest wrapper for scripts/qa_smoke.py.

Marks: integration (requires a live weather proxy).
Run:   pytest tests/test_smoke.py -v
       WEATHERPROXY_BASE=http://myserver:8000 pytest tests/test_smoke.py
"""

from __future__ import annotations

import os
import subprocess
import sys

import pytest

SCRIPTS_DIR = os.path.join(os.path.dirname(__file__), "..", "scripts")
pytestmark = pytest.mark.integration


def test_smoke_local_routing(proxy_base):
    """404 for unrouted paths, 400 for bad image tokens."""
    result = subprocess.run(
        [sys.executable, os.path.join(SCRIPTS_DIR, "qa_smoke.py"), "--base", proxy_base],
        capture_output=True, text=True, timeout=120,
    )
    assert result.returncode == 0, (
        f"qa_smoke.py failed:\nstdout:\n{result.stdout}\nstderr:\n{result.stderr}"
    )
    assert "PASS" in result.stdout, f"Expected PASS in output:\n{result.stdout}"
