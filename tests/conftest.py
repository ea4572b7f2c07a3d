# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any, Callable

import pytest

from observability import logger


@pytest.fixture(autouse=True)
def log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture JSONL log output instead of writing to stdout."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_min_level", 20)
    return captured


@pytest.fixture
def logged_events(log_lines: list[str]) -> Callable[[], list[dict[str, Any]]]:
    """Return a callable decoding everything logged so far."""

    def _decode() -> list[dict[str, Any]]:
        return [json.loads(line) for line in log_lines]

    return _decode
