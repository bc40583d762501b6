"""Utility helpers shared across the engine, API and reporting modules."""

from utils.economics import (
    FinancialSummary,
    build_financial_summary,
    calculate_net_upfront_cost,
    calculate_total_upfront_cost,
    compute_loan_payments,
    estimate_loan_rate,
)
from utils.precision import coerce_finite, to_decimal, to_number
from utils.reporting import format_currency, format_number, format_percent

__all__ = [
    "FinancialSummary",
    "build_financial_summary",
    "calculate_net_upfront_cost",
    "calculate_total_upfront_cost",
    "compute_loan_payments",
    "estimate_loan_rate",
    "coerce_finite",
    "to_decimal",
    "to_number",
    "format_currency",
    "format_number",
    "format_percent",
]
