"""Tests for app-state backed dependencies."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from trackbridge.api.dependencies import (
    get_report_service,
    get_resolution_service,
    get_verification_worker,
)


def _request(**state: object) -> MagicMock:
    request = MagicMock()
    request.app.state = SimpleNamespace(**state)
    return request


@pytest.mark.parametrize(
    ("getter", "attribute"),
    [
        (get_resolution_service, "resolution_service"),
        (get_report_service, "report_service"),
        (get_verification_worker, "verification_worker"),
    ],
)
def test_service_from_state(getter, attribute: str) -> None:
    service = object()

    assert getter(_request(**{attribute: service})) is service


@pytest.mark.parametrize(
    "getter", [get_resolution_service, get_report_service, get_verification_worker]
)
def test_missing_service_is_503(getter) -> None:
    with pytest.raises(HTTPException) as exc_info:
        getter(_request())

    assert exc_info.value.status_code == 503
    assert "not initialized" in exc_info.value.detail
