"""Pytest configuration and shared fixtures for FoxTab."""
import stat
import sys
import threading
import time

import pytest


FAKE_DALFOX = '''#!{python}
import sys
import time

args = sys.argv[1:]
cmd = args[0] if args else ""

if cmd == "version":
    print("v2.9.3")
    sys.exit({version_code})

if cmd == "lines":
    count, code = int(args[1]), int(args[2])
    for i in range(count):
        print("[I] line %d" % i, flush=True)
    sys.exit(code)

if cmd == "sleep":
    print("[I] sleeping", flush=True)
    time.sleep(float(args[1]))
    sys.exit(0)

if cmd == "stderr":
    print("[E] from stderr", file=sys.stderr, flush=True)
    sys.exit(3)

if cmd in ("url", "sxss"):
    target = args[1]
    print("[I] Target " + target, flush=True)
    if "sleep" in target:
        time.sleep(30)
    print("[POC][V][GET] " + target, flush=True)
    sys.exit(0)

sys.exit(64)
'''


def _write_fake(path, version_code=0):
    path.write_text(FAKE_DALFOX.format(python=sys.executable, version_code=version_code))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fake_dalfox(tmp_path):
    """Executable stand-in for dalfox that answers `version`."""
    return _write_fake(tmp_path / "dalfox")


@pytest.fixture
def broken_dalfox(tmp_path):
    """Stand-in whose `version` health check fails."""
    return _write_fake(tmp_path / "dalfox-broken", version_code=1)


class LineCollector:
    """Thread-safe sink that records every line."""

    def __init__(self):
        self.lines = []
        self._cond = threading.Condition()

    def __call__(self, line):
        with self._cond:
            self.lines.append(line)
            self._cond.notify_all()

    def wait_for(self, text, timeout=10.0):
        deadline = time.monotonic() + timeout
        with self._cond:
            while not any(text in l for l in self.lines):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def starting_with(self, prefix):
        return [l for l in self.lines if l.startswith(prefix)]


@pytest.fixture
def collector():
    return LineCollector()
