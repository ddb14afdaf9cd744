"""
Config loader: YAML file -> frozen dataclass tree.

The user id can be overridden with the PAPER_TRADER_USER environment
variable (e.g. from .env). The config file holds only non-secret values.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class MarketConfig:
    catalog_path: str = ""
    tick_seconds: float = 3.0
    max_move_pct: float = 1.5
    min_price: float = 0.01
    always_open: bool = True
    timezone: str = "Asia/Kolkata"
    open: str = "09:15"
    close: str = "15:30"
    seed: int | None = None


@dataclass(frozen=True)
class ExecutionConfig:
    state_dir: str = "data/state"
    initial_cash: float = 1_000_000.0
    reject_when_closed: bool = False


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    user: str
    market: MarketConfig = MarketConfig()
    execution: ExecutionConfig = ExecutionConfig()
    journal: JournalConfig = JournalConfig()
    alerting: AlertingConfig = AlertingConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Every section is optional; missing keys fall back to the dataclass
    defaults. ``PAPER_TRADER_USER`` beats the file's ``user`` key.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    m_raw = raw.get("market", {}) or {}
    seed = m_raw.get("seed")
    m_cfg = MarketConfig(
        catalog_path=str(m_raw.get("catalog_path", "") or ""),
        tick_seconds=float(m_raw.get("tick_seconds", 3.0)),
        max_move_pct=float(m_raw.get("max_move_pct", 1.5)),
        min_price=float(m_raw.get("min_price", 0.01)),
        always_open=bool(m_raw.get("always_open", True)),
        timezone=str(m_raw.get("timezone", "Asia/Kolkata")),
        open=str(m_raw.get("open", "09:15")),
        close=str(m_raw.get("close", "15:30")),
        seed=int(seed) if seed is not None else None,
    )
    if m_cfg.tick_seconds <= 0:
        raise ValueError(f"market.tick_seconds must be positive, got {m_cfg.tick_seconds}")

    ex_raw = raw.get("execution", {}) or {}
    ex_cfg = ExecutionConfig(
        state_dir=str(ex_raw.get("state_dir", "data/state")),
        initial_cash=float(ex_raw.get("initial_cash", 1_000_000)),
        reject_when_closed=bool(ex_raw.get("reject_when_closed", False)),
    )

    j_raw = raw.get("journal", {}) or {}
    j_cfg = JournalConfig(
        path=str(j_raw.get("path", "data/journal.jsonl")),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting", {}) or {}
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    return AppConfig(
        user=os.environ.get("PAPER_TRADER_USER") or str(raw.get("user", "demo")),
        market=m_cfg,
        execution=ex_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
