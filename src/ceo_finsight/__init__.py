# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
CEO FinSight
------------

A Python computation core for CEO-level financial dashboards. It turns
normalized sales transactions and expense postings into a consolidated
picture of the business:

- a consolidated DRE (income statement), per unit or across units,
- rentability by cost center, seller, store, product and channel,
- liquidity, delinquency/aging, efficiency and sustainability indicators,
- growth (MoM, YoY, CAGR), seasonality statistics and a linear forecast,
- recurrence, scenarios and goal attainment.

Every computation is a pure function of its inputs. Business assumptions
(tax rate estimate, aging boundaries, thresholds...) live in one TOML
overridable configuration object. Rounding only happens when results are
exported.

Version: 0.1.0

Usage:
    python -m ceo_finsight.cli --help
"""

__all__ = [
    "cli",
    "config",
    "dre",
    "exceptions",
    "financial",
    "growth",
    "indicators",
    "io",
    "models",
    "periods",
    "rentability",
    "report",
    "stats",
    "views",
]

__version__ = "0.1.0"
