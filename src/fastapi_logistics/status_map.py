"""Courier status vocabularies and the forward-progress ordering."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi_logistics.types import CanonicalStatus

logger = logging.getLogger(__name__)

S = CanonicalStatus

NCM_STATUSES: dict[str, CanonicalStatus] = {
    "Booked": S.HANDOVER_TO_COURIER,
    "Pickup Order Created": S.HANDOVER_TO_COURIER,
    "Drop Off Order Created": S.HANDOVER_TO_COURIER,
    "Picked Up": S.IN_TRANSIT,
    "order picked": S.IN_TRANSIT,
    "In Transit": S.IN_TRANSIT,
    "Package at Hub": S.IN_TRANSIT,
    "dispatched": S.IN_TRANSIT,
    "arrived": S.IN_TRANSIT,
    "redirect": S.IN_TRANSIT,
    "Out for Delivery": S.OUT_FOR_DELIVERY,
    "sent for delivery": S.OUT_FOR_DELIVERY,
    "ofd": S.OUT_FOR_DELIVERY,
    "Delivered": S.DELIVERED,
    "delivery completed": S.DELIVERED,
    "dlvd": S.DELIVERED,
    "On Hold": S.HOLD,
    "hold": S.HOLD,
    "address_issue": S.HOLD,
    "customer_not_available": S.HOLD,
    "phone_unreachable": S.HOLD,
    "rescheduled": S.HOLD,
    "Undelivered": S.RTO_INITIATED,
    "Return in Transit": S.RTO_INITIATED,
    "return request": S.RTO_INITIATED,
    "rto": S.RTO_INITIATED,
    "customer rejected": S.RTO_INITIATED,
    "Return Completed": S.RTO_VERIFICATION_PENDING,
    "returned": S.RTO_VERIFICATION_PENDING,
    "returned to vendor": S.RTO_VERIFICATION_PENDING,
    "delivered to merchant": S.RTO_VERIFICATION_PENDING,
    "Cancelled": S.CANCELLED,
}

GAAUBESI_STATUSES: dict[str, CanonicalStatus] = {
    "Drop Off Order Created": S.HANDOVER_TO_COURIER,
    "Pickup Order Created": S.HANDOVER_TO_COURIER,
    "Package Picked": S.IN_TRANSIT,
    "Package in Transit": S.IN_TRANSIT,
    "Package at Branch": S.IN_TRANSIT,
    "Out for Delivery": S.OUT_FOR_DELIVERY,
    "Delivery Attempted": S.OUT_FOR_DELIVERY,
    "Delivered": S.DELIVERED,
    "Returned": S.RETURNED,
    "Cancelled": S.CANCELLED,
    "On Hold": S.HOLD,
    "Customer Not Available": S.HOLD,
    "Return Initiated": S.RTO_INITIATED,
}

DUMMY_STATUSES: dict[str, CanonicalStatus] = {
    "BOOKED": S.HANDOVER_TO_COURIER,
    "PICKED": S.IN_TRANSIT,
    "INTRANSIT": S.IN_TRANSIT,
    "OFD": S.OUT_FOR_DELIVERY,
    "DELIVERED": S.DELIVERED,
    "RTO": S.RTO_INITIATED,
    "CANCELLED": S.CANCELLED,
}

_RANKS: dict[CanonicalStatus, int] = {
    S.HANDOVER_TO_COURIER: 10,
    S.IN_TRANSIT: 20,
    S.OUT_FOR_DELIVERY: 30,
    S.HOLD: 30,
    S.RTO_INITIATED: 40,
    S.RTO_VERIFICATION_PENDING: 50,
    S.DELIVERED: 60,
    S.RETURNED: 60,
    S.CANCELLED: 60,
}

TERMINAL_STATUSES = frozenset({S.DELIVERED, S.RETURNED, S.CANCELLED})


def _normalize_key(raw: str) -> str:
    return "_".join(raw.strip().casefold().replace("-", " ").split())


class StatusMap:
    """Translate a courier's raw status vocabulary to canonical statuses.

    Lookup tries the exact raw value first, then a normalized form
    (case-folded, spaces and hyphens as underscores), so ``"Out for
    Delivery"``, ``"out-for-delivery"`` and ``"OUT_FOR_DELIVERY"`` all
    resolve. Anything unrecognized is ``unknown``.
    """

    def __init__(self, table: Mapping[str, str | CanonicalStatus]) -> None:
        self._exact: dict[str, CanonicalStatus] = {}
        self._normalized: dict[str, CanonicalStatus] = {}
        for raw, status in table.items():
            self.add(raw, status)

    def add(self, raw: str, status: str | CanonicalStatus) -> None:
        try:
            canonical = CanonicalStatus(status)
        except ValueError:
            logger.warning(
                "Ignoring status mapping %r -> %r: not a canonical status",
                raw,
                status,
            )
            return
        self._exact[raw] = canonical
        self._normalized[_normalize_key(raw)] = canonical

    def merged(
        self, overrides: Mapping[str, str | CanonicalStatus]
    ) -> StatusMap:
        """Return a copy with ``overrides`` layered over this table."""
        combined = StatusMap(self._exact)
        for raw, status in overrides.items():
            combined.add(raw, status)
        return combined

    def translate(self, raw: str | None) -> CanonicalStatus:
        if raw is None:
            return S.UNKNOWN
        raw = str(raw)
        if raw in self._exact:
            return self._exact[raw]
        return self._normalized.get(_normalize_key(raw), S.UNKNOWN)

    def __contains__(self, raw: object) -> bool:
        return (
            isinstance(raw, str)
            and self.translate(raw) is not S.UNKNOWN
        )

    def __len__(self) -> int:
        return len(self._exact)


def status_rank(status: str | CanonicalStatus | None) -> int:
    try:
        return _RANKS.get(CanonicalStatus(status), 0)
    except ValueError:
        return 0


def is_terminal(status: str | CanonicalStatus | None) -> bool:
    try:
        return CanonicalStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False


def is_forward_progress(
    current: str | CanonicalStatus | None,
    new: str | CanonicalStatus,
) -> bool:
    """Whether moving ``current`` to ``new`` is allowed.

    Equal ranks are allowed so re-attempts (hold and out for delivery)
    can alternate. Terminal states never move.
    """
    if new == S.UNKNOWN or new == current:
        return False
    if is_terminal(current):
        return False
    return status_rank(new) >= status_rank(current)
