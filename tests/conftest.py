"""
Shared fixtures: a scripted process runner and a controllable clock.
"""

from __future__ import annotations

from typing import Callable, Union

import pytest

from toolchain_probe.common import ProcessResult
from toolchain_probe.config import Config


Response = Union[ProcessResult, Callable[[tuple], ProcessResult]]


def ok(stdout: str = "", stderr: str = "", args: tuple = ()) -> ProcessResult:
    return ProcessResult(args, 0, stdout=stdout, stderr=stderr)


def fail(returncode: int = 1, stdout: str = "", stderr: str = "", args: tuple = ()) -> ProcessResult:
    return ProcessResult(args, returncode, stdout=stdout, stderr=stderr)


class FakeRunner:
    """
    Stand-in for ``run_process``.

    Responses are registered by argv prefix; the longest matching prefix wins.
    Unregistered commands behave like a missing executable. Every call is
    recorded so tests can assert on spawn counts.
    """

    def __init__(self):
        self.responses: dict[tuple[str, ...], Response] = {}
        self.calls: list[tuple[str, ...]] = []
        self.cwds: list[str | None] = []
        self.timeouts: list[float | None] = []

    def add(self, prefix: tuple[str, ...] | list[str], response: Response) -> "FakeRunner":
        self.responses[tuple(prefix)] = response
        return self

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call[:len(prefix)] == prefix)

    async def __call__(self, args, cwd=None, timeout=None, env=None) -> ProcessResult:
        argv = tuple(args)
        self.calls.append(argv)
        self.cwds.append(cwd)
        self.timeouts.append(timeout)

        for prefix in sorted(self.responses, key=len, reverse=True):
            if argv[:len(prefix)] == prefix:
                response = self.responses[prefix]
                return response(argv) if callable(response) else response
        return ProcessResult(argv, None, error=f"[Errno 2] No such file or directory: '{argv[0]}'")


class FakeClock:
    """Epoch-milliseconds clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def no_which():
    return lambda name: None


@pytest.fixture
def home(tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    return path
