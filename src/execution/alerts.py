"""Price alerts: one-shot above/below triggers evaluated after each tick."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Iterable, Mapping

from execution.errors import AlertRejected, AlertRejectReason
from execution.models import AlertCondition, PriceAlert
from market.contracts import Instrument


class PriceAlertBook:
    def __init__(self, alerts: Iterable[PriceAlert] = ()) -> None:
        self._alerts: dict[str, PriceAlert] = {a.id: a.copy() for a in alerts}

    def add(
        self,
        instrument: Instrument | None,
        price: float,
        condition: AlertCondition,
        *,
        now: datetime,
        instrument_id: str = "",
    ) -> PriceAlert:
        if instrument is None:
            raise AlertRejected(AlertRejectReason.UNKNOWN_INSTRUMENT, instrument_id)
        if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price) or price <= 0:
            raise AlertRejected(AlertRejectReason.INVALID_PRICE, repr(price))
        alert = PriceAlert(
            id=str(uuid.uuid4()),
            instrument_id=instrument.id,
            symbol=instrument.symbol,
            price=float(price),
            condition=AlertCondition(condition),
            created_at=now,
        )
        self._alerts[alert.id] = alert
        return alert.copy()

    def remove(self, alert_id: str) -> PriceAlert:
        alert = self._alerts.pop(alert_id, None)
        if alert is None:
            raise AlertRejected(AlertRejectReason.UNKNOWN_ALERT, alert_id)
        return alert

    def evaluate(self, instruments: Mapping[str, Instrument], now: datetime) -> list[PriceAlert]:
        """Deactivate and return every active alert whose condition now holds."""
        fired: list[PriceAlert] = []
        for alert in self._alerts.values():
            if not alert.active:
                continue
            inst = instruments.get(alert.instrument_id)
            if inst is None or not alert.is_triggered_by(inst.current_price):
                continue
            alert.active = False
            alert.triggered_at = now
            fired.append(alert.copy())
        return fired

    def alerts(self, instrument_id: str | None = None) -> list[PriceAlert]:
        return [a.copy() for a in self._alerts.values() if instrument_id is None or a.instrument_id == instrument_id]
