"""
Portfolio ledger: cash plus one Holding per instrument, weighted-average cost.

Single writer: only order-book execution (and portfolio reset) mutate it.
Cash is kept at currency precision (2 dp) after every mutation so long
sequences of fills never accumulate float drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from execution.errors import InternalConsistencyViolation
from execution.models import Holding
from market.contracts import Instrument

CURRENCY_DP = 2


def to_money(value: float) -> float:
    return round(value, CURRENCY_DP)


@dataclass(frozen=True)
class HoldingValuation:
    instrument_id: str
    symbol: str
    quantity: int
    average_buy_price: float
    invested_amount: float
    current_price: float
    current_value: float
    pnl: float
    pnl_percent: float


@dataclass(frozen=True)
class PortfolioValuation:
    cash: float
    invested: float
    current_value: float
    pnl: float
    pnl_percent: float
    total_value: float
    holdings: list[HoldingValuation]


class PortfolioLedger:
    """Cash and holdings. ``apply_buy`` / ``apply_sell`` apply exactly one fill."""

    def __init__(self, cash: float, holdings: Iterable[Holding] = ()) -> None:
        self._cash = to_money(cash)
        self._holdings: dict[str, Holding] = {h.instrument_id: h.copy() for h in holdings}

    @property
    def cash(self) -> float:
        return self._cash

    def holding(self, instrument_id: str) -> Holding | None:
        h = self._holdings.get(instrument_id)
        return h.copy() if h else None

    def held_quantity(self, instrument_id: str) -> int:
        h = self._holdings.get(instrument_id)
        return h.quantity if h else 0

    def holdings(self) -> list[Holding]:
        return [h.copy() for h in self._holdings.values()]

    def apply_buy(self, instrument_id: str, symbol: str, quantity: int, price: float) -> float:
        """Debit cash and merge the fill into the holding. Returns the fill total."""
        total = to_money(quantity * price)
        self._cash = to_money(self._cash - total)

        existing = self._holdings.get(instrument_id)
        if existing is not None:
            new_qty = existing.quantity + quantity
            new_invested = existing.invested_amount + total
            existing.quantity = new_qty
            existing.invested_amount = new_invested
            existing.average_buy_price = new_invested / new_qty
        else:
            self._holdings[instrument_id] = Holding(
                instrument_id=instrument_id,
                symbol=symbol,
                quantity=quantity,
                average_buy_price=price,
                invested_amount=total,
            )
        return total

    def apply_sell(self, instrument_id: str, quantity: int, price: float, *, order_id: str | None = None) -> float:
        """Credit cash and reduce the holding. Returns the fill total.

        Fails fast, before touching cash, if the holding cannot cover the sale.
        """
        existing = self._holdings.get(instrument_id)
        if existing is None:
            raise InternalConsistencyViolation(order_id, f"SELL {quantity} of {instrument_id} with no holding")
        if existing.quantity < quantity:
            raise InternalConsistencyViolation(
                order_id,
                f"SELL {quantity} of {instrument_id} exceeds held quantity {existing.quantity}",
            )

        total = to_money(quantity * price)
        self._cash = to_money(self._cash + total)

        remaining = existing.quantity - quantity
        if remaining > 0:
            existing.invested_amount = existing.invested_amount * (remaining / existing.quantity)
            existing.quantity = remaining
            # average_buy_price is sell-invariant under weighted-average cost
        else:
            del self._holdings[instrument_id]
        return total

    def reset(self, cash: float) -> None:
        self._cash = to_money(cash)
        self._holdings.clear()

    def valuation(self, instruments: Mapping[str, Instrument]) -> PortfolioValuation:
        """Mark holdings to the live price. Holdings sorted by current value, largest first."""
        lines: list[HoldingValuation] = []
        for h in self._holdings.values():
            inst = instruments.get(h.instrument_id)
            price = inst.current_price if inst else h.average_buy_price
            value = h.quantity * price
            pnl = value - h.invested_amount
            pnl_pct = (pnl / h.invested_amount * 100) if h.invested_amount else 0.0
            lines.append(
                HoldingValuation(
                    instrument_id=h.instrument_id,
                    symbol=h.symbol,
                    quantity=h.quantity,
                    average_buy_price=h.average_buy_price,
                    invested_amount=h.invested_amount,
                    current_price=price,
                    current_value=value,
                    pnl=pnl,
                    pnl_percent=pnl_pct,
                )
            )
        lines.sort(key=lambda v: v.current_value, reverse=True)

        invested = sum(v.invested_amount for v in lines)
        current = sum(v.current_value for v in lines)
        pnl = current - invested
        return PortfolioValuation(
            cash=self._cash,
            invested=invested,
            current_value=current,
            pnl=pnl,
            pnl_percent=(pnl / invested * 100) if invested else 0.0,
            total_value=self._cash + current,
            holdings=lines,
        )
