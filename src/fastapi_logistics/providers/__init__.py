"""Courier adapters."""

from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.providers.dummy import DummyAdapter
from fastapi_logistics.providers.gaaubesi import GaauBesiAdapter
from fastapi_logistics.providers.ncm import NCMAdapter

__all__ = [
    "DummyAdapter",
    "GaauBesiAdapter",
    "NCMAdapter",
    "ProviderAdapter",
]
