"""Public API surface tests."""

import re

import pytest

import fastapi_logistics


def test_all_exports_exact_set() -> None:
    expected = {
        "AdapterRegistry",
        "LogisticsConfig",
        "LogisticsError",
        "OrderStore",
        "SyncOrchestrator",
        "WebhookIntake",
        "__version__",
        "create_logistics_router",
        "register_exception_handlers",
    }
    assert set(fastapi_logistics.__all__) == expected


def test_all_exports_importable() -> None:
    for name in fastapi_logistics.__all__:
        obj = getattr(fastapi_logistics, name)
        assert obj is not None, f"{name} resolved to None"


def test_version_semver_format() -> None:
    version = fastapi_logistics.__version__
    assert re.match(r"^\d+\.\d+\.\d+", version), (
        f"Version {version!r} does not match semver format"
    )


def test_getattr_raises_for_unknown_attribute() -> None:
    with pytest.raises(AttributeError, match="no_such_thing"):
        fastapi_logistics.no_such_thing  # noqa: B018
