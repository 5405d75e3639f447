# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for CEO FinSight.

Every business assumption used by the engine (tax-rate estimate, due-date
grace period, customer-economics assumptions, aging boundaries and the
classification thresholds) is carried by a single frozen dataclass,
EngineConfig. Nothing else in the package hard-codes such a constant.

The configuration can be loaded from a TOML file. Any missing section or
key falls back to the defaults defined here, so an empty file is valid.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomllib  # Python 3.11+

from .exceptions import ConfigMissingError

# Default keyword -> expense bucket map. Keys are matched case-insensitively
# against the expense category, then its description, then the name of its
# cost center.
DEFAULT_EXPENSE_CATEGORIES: dict[str, str] = {
    # administrative
    "administrativo": "administrative",
    "administrative": "administrative",
    "aluguel": "administrative",
    "rent": "administrative",
    "condominio": "administrative",
    "energia": "administrative",
    "agua": "administrative",
    "internet": "administrative",
    "telefone": "administrative",
    "contabilidade": "administrative",
    "accounting": "administrative",
    "juridico": "administrative",
    "software": "administrative",
    "seguro": "administrative",
    "limpeza": "administrative",
    "manutencao": "administrative",
    # commercial (sales and marketing)
    "comercial": "commercial",
    "vendas": "commercial",
    "sales": "commercial",
    "comissao": "commercial",
    "frete": "commercial",
    "marketing": "commercial",
    "publicidade": "commercial",
    "promocao": "commercial",
    "advertising": "commercial",
    # personnel
    "salario": "personnel",
    "salary": "personnel",
    "payroll": "personnel",
    "folha": "personnel",
    "encargo": "personnel",
    "inss": "personnel",
    "fgts": "personnel",
    "beneficio": "personnel",
    "ferias": "personnel",
    "rescisao": "personnel",
    "treinamento": "personnel",
    # financial
    "juros": "financial",
    "interest": "financial",
    "tarifa bancaria": "financial",
    "bank fee": "financial",
    "iof": "financial",
    "multa": "financial",
}

DEFAULT_MARKETING_KEYWORDS: tuple[str, ...] = (
    "marketing",
    "publicidade",
    "anuncio",
    "propaganda",
    "google",
    "facebook",
    "instagram",
    "ads",
)

EXPENSE_BUCKETS: tuple[str, ...] = (
    "administrative",
    "commercial",
    "personnel",
    "financial",
    "other",
)


@dataclass(frozen=True)
class EngineConfig:
    """
    Business assumptions and thresholds used by the computation engine.

    Assumptions (not measured, documented as such in outputs):
        tax_rate_estimate: Flat tax rate applied to gross revenue when a
            transaction carries no explicit tax. None means no default is
            configured; consolidating such a transaction then raises
            ConfigMissingError.
        due_date_grace_days: Days added to the occurrence date when a
            transaction has no due date.
        purchase_frequency_assumption: Purchases per customer per month.
        customer_lifespan_months_assumption: Expected customer lifespan.
        margin_fraction_assumption: Margin fraction used by the LTV formula.
        inventory_days_assumption: Days of inventory used by the cash
            conversion cycle when no inventory balance is supplied.
        doubtful_provision_pct: Share of open receivables provisioned as
            doubtful debts.

    Thresholds are (limit, label) tuples ordered from best to worst tier.
    """

    tax_rate_estimate: Optional[float] = 0.15
    due_date_grace_days: int = 30
    purchase_frequency_assumption: float = 1.0
    customer_lifespan_months_assumption: float = 12.0
    margin_fraction_assumption: float = 0.30
    inventory_days_assumption: float = 0.0
    doubtful_provision_pct: float = 5.0

    aging_bucket_boundaries: tuple[int, ...] = (30, 60, 90)

    liquidity_thresholds: tuple[tuple[float, str], ...] = (
        (1.5, "excellent"),
        (1.0, "adequate"),
        (0.5, "attention"),
    )
    delinquency_thresholds: tuple[tuple[float, str], ...] = (
        (2.0, "excellent"),
        (5.0, "good"),
        (10.0, "attention"),
    )
    cash_cycle_thresholds: tuple[tuple[float, str], ...] = (
        (30.0, "excellent"),
        (60.0, "good"),
        (90.0, "attention"),
    )
    ltv_cac_thresholds: tuple[tuple[float, str], ...] = (
        (3.0, "excellent"),
        (2.0, "good"),
        (1.0, "attention"),
    )
    coverage_thresholds: tuple[tuple[float, str], ...] = (
        (6.0, "excellent"),
        (3.0, "good"),
        (1.0, "attention"),
    )
    debt_thresholds: tuple[tuple[float, str], ...] = (
        (50.0, "healthy"),
        (70.0, "attention"),
    )
    goal_thresholds: tuple[tuple[float, str], ...] = (
        (100.0, "exceeded"),
        (90.0, "reached"),
        (75.0, "near"),
    )
    # (minimum coverage months, maximum debt ratio %, label), best first.
    health_tiers: tuple[tuple[float, float, str], ...] = (
        (6.0, 30.0, "excellent"),
        (3.0, 50.0, "good"),
        (1.0, 70.0, "attention"),
    )
    volatility_thresholds: tuple[float, float] = (10.0, 20.0)
    moving_average_window: int = 3
    growth_tolerance_pct: float = 0.5

    gross_margin_alert_pct: float = 20.0
    operating_expenses_alert_pct: float = 50.0

    top_products: int = 20
    top_debtors: int = 10

    revenue_goal_uplift: float = 0.15
    ticket_goal_uplift: float = 0.10
    net_margin_goal_pct: float = 20.0

    expense_categories: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_EXPENSE_CATEGORIES)
    )
    marketing_keywords: tuple[str, ...] = DEFAULT_MARKETING_KEYWORDS
    fixed_expense_buckets: tuple[str, ...] = ("administrative", "personnel")

    currency: str = "BRL"
    decimals: int = 2


def require_tax_rate(config: EngineConfig) -> float:
    """
    Return the configured tax-rate estimate.

    Raises:
        ConfigMissingError: if no estimate is configured.
    """
    if config.tax_rate_estimate is None:
        raise ConfigMissingError(
            "assumptions.tax_rate_estimate",
            "A transaction has no explicit tax and no tax_rate_estimate is "
            "configured; refusing to guess a tax rate.",
        )
    return config.tax_rate_estimate


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    return data


def _section(raw: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    """Walk nested tables, returning {} whenever a level is missing or invalid."""
    current: Any = raw
    for key in keys:
        current = current.get(key) if isinstance(current, Mapping) else None
        if not isinstance(current, Mapping):
            return {}
    return current


def _float(section: Mapping[str, Any], key: str, default: float) -> float:
    if key not in section:
        return default
    try:
        return float(section[key])
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for {key!r} in the configuration. Expected a number."
        ) from exc


def _int(section: Mapping[str, Any], key: str, default: int) -> int:
    if key not in section:
        return default
    try:
        return int(section[key])
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for {key!r} in the configuration. Expected an integer."
        ) from exc


def _tiers(
    section: Mapping[str, Any], default: tuple[tuple[float, str], ...]
) -> tuple[tuple[float, str], ...]:
    """
    Read a tier table such as:

        [thresholds.liquidity]
        excellent = 1.5
        adequate = 1.0
        attention = 0.5

    Tiers keep the file order, which must go from best to worst.
    """
    if not section:
        return default
    tiers: list[tuple[float, str]] = []
    for label, value in section.items():
        try:
            tiers.append((float(value), str(label)))
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"Invalid threshold {label!r}: expected a number, got {value!r}."
            ) from exc
    return tuple(tiers)


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the engine configuration from a TOML file.

    Without a path, the built-in defaults are returned unchanged.

    Expected (all optional) sections
    --------------------------------
    [assumptions]
        tax_rate_estimate, require_explicit_tax, due_date_grace_days,
        purchase_frequency, customer_lifespan_months, margin_fraction,
        inventory_days, doubtful_provision_pct.

    [aging]
        boundaries = [30, 60, 90]

    [thresholds.<name>]
        Tier tables for liquidity, delinquency, cash_cycle, ltv_cac,
        coverage, debt and goals (label = limit, best tier first).

    [growth]
        tolerance_pct, volatility_low, volatility_high, moving_average_window.

    [alerts]
        gross_margin_min_pct, operating_expenses_max_pct.

    [limits]
        top_products, top_debtors.

    [goals]
        revenue_uplift, ticket_uplift, net_margin_pct.

    [expense_categories]
        keyword = "bucket" entries, merged over the defaults.

    [expenses]
        marketing_keywords = [...], fixed_buckets = [...]

    [display]
        currency, decimals.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file cannot be parsed or a value has the wrong type.
    """
    if config_path is None:
        return EngineConfig()

    raw = _load_toml(Path(config_path).resolve())
    defaults = EngineConfig()

    # 1) Assumptions
    assumptions = _section(raw, "assumptions")
    if bool(assumptions.get("require_explicit_tax", False)):
        tax_rate: Optional[float] = None
    else:
        tax_rate = _float(assumptions, "tax_rate_estimate", 0.15)
        if not 0 <= tax_rate < 1:
            raise ValueError("assumptions.tax_rate_estimate must be in [0, 1).")

    # 2) Aging boundaries
    aging = _section(raw, "aging")
    boundaries_raw = aging.get("boundaries", list(defaults.aging_bucket_boundaries))
    try:
        boundaries = tuple(int(b) for b in boundaries_raw)
    except (TypeError, ValueError) as exc:
        raise ValueError("aging.boundaries must be a list of integers.") from exc
    if not boundaries or list(boundaries) != sorted(set(boundaries)) or boundaries[0] <= 0:
        raise ValueError("aging.boundaries must be strictly increasing positive days.")

    # 3) Thresholds
    def tiers(name: str, default: tuple[tuple[float, str], ...]):
        return _tiers(_section(raw, "thresholds", name), default)

    growth = _section(raw, "growth")
    alerts = _section(raw, "alerts")
    limits = _section(raw, "limits")
    goals = _section(raw, "goals")
    display = _section(raw, "display")

    # 4) Expense classification
    categories = dict(defaults.expense_categories)
    for keyword, bucket in _section(raw, "expense_categories").items():
        bucket = str(bucket).lower()
        if bucket not in EXPENSE_BUCKETS:
            raise ValueError(
                f"Unknown expense bucket {bucket!r} for keyword {keyword!r}. "
                f"Expected one of: {', '.join(EXPENSE_BUCKETS)}."
            )
        categories[str(keyword).lower()] = bucket

    expenses = _section(raw, "expenses")
    marketing_keywords = tuple(
        str(k).lower()
        for k in expenses.get("marketing_keywords", defaults.marketing_keywords)
    )
    fixed_buckets = tuple(
        str(b).lower() for b in expenses.get("fixed_buckets", defaults.fixed_expense_buckets)
    )

    return EngineConfig(
        tax_rate_estimate=tax_rate,
        due_date_grace_days=_int(assumptions, "due_date_grace_days", 30),
        purchase_frequency_assumption=_float(assumptions, "purchase_frequency", 1.0),
        customer_lifespan_months_assumption=_float(
            assumptions, "customer_lifespan_months", 12.0
        ),
        margin_fraction_assumption=_float(assumptions, "margin_fraction", 0.30),
        inventory_days_assumption=_float(assumptions, "inventory_days", 0.0),
        doubtful_provision_pct=_float(
            assumptions, "doubtful_provision_pct", defaults.doubtful_provision_pct
        ),
        aging_bucket_boundaries=boundaries,
        liquidity_thresholds=tiers("liquidity", defaults.liquidity_thresholds),
        delinquency_thresholds=tiers("delinquency", defaults.delinquency_thresholds),
        cash_cycle_thresholds=tiers("cash_cycle", defaults.cash_cycle_thresholds),
        ltv_cac_thresholds=tiers("ltv_cac", defaults.ltv_cac_thresholds),
        coverage_thresholds=tiers("coverage", defaults.coverage_thresholds),
        debt_thresholds=tiers("debt", defaults.debt_thresholds),
        goal_thresholds=tiers("goals", defaults.goal_thresholds),
        volatility_thresholds=(
            _float(growth, "volatility_low", defaults.volatility_thresholds[0]),
            _float(growth, "volatility_high", defaults.volatility_thresholds[1]),
        ),
        growth_tolerance_pct=_float(growth, "tolerance_pct", defaults.growth_tolerance_pct),
        moving_average_window=_int(
            growth, "moving_average_window", defaults.moving_average_window
        ),
        gross_margin_alert_pct=_float(
            alerts, "gross_margin_min_pct", defaults.gross_margin_alert_pct
        ),
        operating_expenses_alert_pct=_float(
            alerts, "operating_expenses_max_pct", defaults.operating_expenses_alert_pct
        ),
        top_products=_int(limits, "top_products", defaults.top_products),
        top_debtors=_int(limits, "top_debtors", defaults.top_debtors),
        revenue_goal_uplift=_float(goals, "revenue_uplift", defaults.revenue_goal_uplift),
        ticket_goal_uplift=_float(goals, "ticket_uplift", defaults.ticket_goal_uplift),
        net_margin_goal_pct=_float(goals, "net_margin_pct", defaults.net_margin_goal_pct),
        expense_categories=categories,
        marketing_keywords=marketing_keywords,
        fixed_expense_buckets=fixed_buckets,
        currency=str(display.get("currency", defaults.currency)),
        decimals=_int(display, "decimals", defaults.decimals),
    )
