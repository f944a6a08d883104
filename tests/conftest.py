"""
Brief: Global pytest configuration: src on sys.path, per-test 10s timeout and
shared engine fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import asyncio
import logging
import os
import signal
import sys

import pytest

# Ensure 'src' is on sys.path so 'dnsblock' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dnsblock.engine import PolicyEngine  # noqa: E402
from dnsblock.resolvers.alias import HopAnswer  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


class FakeRecordLookup:
    """
    Brief: In-memory stand-in for DnsPythonLookup.

    Inputs:
      - records: mapping name -> HopAnswer (missing names are dead ends)

    Outputs:
      - lookup(name) -> HopAnswer; ``calls`` lists every queried name
    """

    def __init__(self, records=None, failures=None):
        self.records = dict(records or {})
        self.failures = dict(failures or {})
        self.calls = []

    def lookup(self, name):
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]
        return self.records.get(name, HopAnswer())


class FakeReverse:
    """
    Brief: Async reverse resolver returning canned hostnames.

    Inputs:
      - names: mapping ip -> hostname or ResolutionFailure instance
      - delays: mapping ip -> seconds to sleep before answering

    Outputs:
      - ``await lookup(ip)``; ``calls`` lists every queried address
    """

    def __init__(self, names=None, delays=None):
        self.names = dict(names or {})
        self.delays = dict(delays or {})
        self.calls = []

    async def lookup(self, ip):
        self.calls.append(ip)
        await asyncio.sleep(self.delays.get(ip, 0))
        value = self.names.get(ip, f"host-{ip.replace('.', '-')}")
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def engine():
    """
    Brief: Fresh PolicyEngine per test.

    Outputs:
      - PolicyEngine with empty indexes
    """
    return PolicyEngine()


@pytest.fixture
def fake_lookup():
    """
    Brief: Factory fixture for FakeRecordLookup.

    Outputs:
      - Callable(records=None, failures=None) -> FakeRecordLookup
    """
    return FakeRecordLookup


@pytest.fixture
def fake_reverse():
    """
    Brief: Factory fixture for FakeReverse.

    Outputs:
      - Callable(names=None, delays=None) -> FakeReverse
    """
    return FakeReverse


@pytest.fixture
def restore_root_logging():
    """
    Brief: Snapshot and restore root logger handlers/level around a test that
    calls init_logging.

    Outputs:
      - None
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield
    finally:
        for h in list(root.handlers):
            if h not in handlers:
                root.removeHandler(h)
                h.close()
        for h in handlers:
            if h not in root.handlers:
                root.addHandler(h)
        root.setLevel(level)
        logging.captureWarnings(False)
