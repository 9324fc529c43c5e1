"""
Pytest configuration: default runs most tests; use --run-slow to include slow tests.
"""

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (live provider API calls). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for requests.Response stand-ins: make_response(status, json_body=None, text=None)."""

    def _make(status_code: int = 200, json_body: Any = None, text: str | None = None) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.headers = {"content-type": "application/json"}
        if json_body is None:
            response.json.side_effect = ValueError("Expecting value")
            response.text = text or ""
        else:
            response.json.return_value = json_body
            response.text = text if text is not None else json.dumps(json_body)
        return response

    return _make
