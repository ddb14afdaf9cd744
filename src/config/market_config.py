"""
Instrument catalog loader: JSON file -> Instrument list, validated against JSON Schema.

Default catalog: docs/config/instruments.default.json
Schema:          docs/config/instruments.schema.json

Usage:
    from config.market_config import load_instruments
    instruments = load_instruments()                   # default catalog
    instruments = load_instruments("my_catalog.json")  # custom file
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

from market.contracts import Instrument

logger = logging.getLogger("papertrade.config")

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When installed as a package, pyproject.toml won't exist; fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CATALOG_PATH = _PROJECT_ROOT / "docs" / "config" / "instruments.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "instruments.schema.json"


class ConfigError(Exception):
    """Raised when the instrument catalog cannot be loaded or validated."""


def _validate_schema(data: Any, schema_path: Path) -> None:
    if not schema_path.exists():
        raise ConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ConfigError(f"Instrument catalog validation failed: {exc.message}") from exc


def _build_instrument(raw: dict[str, Any]) -> Instrument:
    price = float(raw["current_price"])
    prev = float(raw.get("previous_close", price))
    change = price - prev
    return Instrument(
        id=raw["id"],
        symbol=raw["symbol"],
        name=raw["name"],
        exchange=raw.get("exchange", "NSE"),
        sector=raw.get("sector", ""),
        current_price=price,
        previous_close=prev,
        open=float(raw.get("open", prev)),
        day_high=float(raw.get("day_high", max(price, prev))),
        day_low=float(raw.get("day_low", min(price, prev))),
        volume=int(raw.get("volume", 0)),
        change=round(change, 2),
        change_percent=round(change / prev * 100, 2) if prev else 0.0,
    )


def load_instruments(
    catalog_path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> list[Instrument]:
    """Load and validate the instrument catalog.

    Raises
    ------
    ConfigError
        If the file is missing, unparseable, fails schema validation, or
        repeats an instrument id or symbol.
    """
    cat_path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cat_path.exists():
        raise ConfigError(f"Instrument catalog not found: {cat_path}")

    try:
        with open(cat_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Instrument catalog is not valid JSON: {exc}") from exc

    _validate_schema(data, sch_path)

    instruments = [_build_instrument(r) for r in data["instruments"]]
    ids = [i.id for i in instruments]
    symbols = [i.symbol.upper() for i in instruments]
    if len(set(ids)) != len(ids):
        raise ConfigError("Instrument catalog repeats an instrument id")
    if len(set(symbols)) != len(symbols):
        raise ConfigError("Instrument catalog repeats a symbol")

    logger.debug("Loaded %d instruments from %s", len(instruments), cat_path)
    return instruments
