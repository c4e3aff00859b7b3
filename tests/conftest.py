import os
from collections.abc import Callable
from typing import Any

import pytest

from vibe.vibe_ast import ASTNode
from vibe.vibe_parser import ParseResult, parse

# Monkeypatch coverage to bypass teardown crash in act/docker
if os.getenv("COVERAGE_PROCESS_START"):
    import coverage

    coverage.process_startup()

    # Nukes the teardown assertion that fails in act
    import coverage.collector

    def safe_stop(self: Any) -> None:
        if self in getattr(self, "_collectors", []):
            self._collectors.remove(self)

    coverage.collector.Collector.stop = safe_stop


@pytest.fixture  # type: ignore[misc]
def parse_ok() -> Callable[[str], ParseResult]:
    """Parse and fail the test on any diagnostic."""

    def _parse(source: str) -> ParseResult:
        result = parse(source)
        assert result.diagnostics == [], [d.format() for d in result.diagnostics]
        return result

    return _parse


@pytest.fixture  # type: ignore[misc]
def statement(parse_ok: Callable[[str], ParseResult]) -> Callable[[str], ASTNode]:
    """Parse a single clean statement and return its node."""

    def _statement(source: str) -> ASTNode:
        body = parse_ok(source).root.get("body")
        assert len(body) == 1, body
        return body[0]

    return _statement
