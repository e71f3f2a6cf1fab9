"""Home-delivery versus branch-pickup resolution."""

from __future__ import annotations

from fastapi_logistics.types import DeliveryType


def classify_delivery_type(value: str | None) -> DeliveryType | None:
    """Classify a free-text delivery type, or ``None`` if ambiguous."""
    text = (value or "").strip().lower()
    if not text:
        return None
    if text == "d2b" or "pickup" in text or "branch" in text:
        return DeliveryType.D2B
    if text == "d2d" or "home" in text or "door" in text:
        return DeliveryType.D2D
    return None


def resolve_delivery_type(
    persisted: str | None,
    override: str | None = None,
) -> DeliveryType:
    """Decide D2D or D2B for a push.

    The persisted order value is the system of record and wins whenever
    it classifies. The caller override is only consulted when the
    persisted value is empty or unclassifiable, and selects D2B only on
    an exact (case-insensitive) ``"D2B"``.
    """
    classified = classify_delivery_type(persisted)
    if classified is not None:
        return classified
    if override:
        if override.strip().upper() == DeliveryType.D2B:
            return DeliveryType.D2B
        return DeliveryType.D2D
    return DeliveryType.D2D
