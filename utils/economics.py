"""Cost, payback and financing helpers shared across app and API entrypoints.

This module stays free of any UI dependency so it can be reused from
notebooks, the HTTP API, or tests. All arithmetic runs on ``Decimal`` values
and only converts to ``float`` when a figure is written to a result object.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, Overflow
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from utils.precision import (
    HUNDRED,
    ONE,
    ZERO,
    engine_context,
    round_half_up,
    to_decimal,
    to_number,
)

if TYPE_CHECKING:  # pragma: no cover - import only needed for annotations
    from services.simulation_core import ProjectionYear, SolarConfig


NOT_REACHED_LABEL = "Not reached in 25 years"

# Tiered APR estimates keyed by the minimum credit score for the tier.
LOAN_RATE_TIERS: tuple[tuple[int, float], ...] = (
    (800, 6.99),
    (740, 7.99),
    (670, 9.49),
    (580, 12.99),
    (300, 17.99),
)


@dataclass(frozen=True)
class FinancialSummary:
    """Headline payback metrics derived from a full projection.

    ``break_even_year`` is fractional (two decimals) and ``None`` when the
    cumulative savings never cover the net upfront cost. Loan fields are zero
    for cash purchases.
    """

    total_savings: float
    break_even_year: Optional[float]
    break_even_label: str
    net_upfront_cost: float
    roi_percent: float
    monthly_loan_payment: float = 0.0
    total_loan_cost: float = 0.0
    total_interest_paid: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "totalSavings": data["total_savings"],
            "breakEvenYear": data["break_even_year"],
            "breakEvenLabel": data["break_even_label"],
            "netUpfrontCost": data["net_upfront_cost"],
            "roiPercent": data["roi_percent"],
            "monthlyLoanPayment": data["monthly_loan_payment"],
            "totalLoanCost": data["total_loan_cost"],
            "totalInterestPaid": data["total_interest_paid"],
        }


@dataclass(frozen=True)
class LoanOutputs:
    """Standard amortization results for a fixed-rate installment loan."""

    monthly_payment: float
    total_cost: float
    total_interest: float


def _line_item_cost(mode: str, unit_cost: float, bulk_cost: float) -> Decimal:
    """Return a single-unit line item honoring per-unit or bulk package pricing."""

    if mode == "bulk":
        return to_decimal(bulk_cost)
    return to_decimal(unit_cost)


def _panel_hardware_cost(config: "SolarConfig") -> Decimal:
    """Return panel hardware spend for the configured pricing mode.

    Bulk packages are converted to an implied per-panel price so the array
    size still drives the spend. A package with no units priced in has no
    usable per-panel price and contributes nothing.
    """

    panel_count = to_decimal(config.panel_count)
    if config.pricing_mode == "bulk":
        bulk_count = to_decimal(config.panel_bulk_count)
        if bulk_count <= 0:
            return ZERO
        return panel_count * (to_decimal(config.panel_bulk_cost) / bulk_count)
    return panel_count * to_decimal(config.cost_per_panel)


def calculate_total_upfront_cost(config: "SolarConfig") -> float:
    """Return gross installed cost before incentives (USD)."""

    with engine_context():
        panel_hardware = _panel_hardware_cost(config)
        inverter_cost = _line_item_cost(
            config.inverter_pricing_mode, config.inverter_cost, config.inverter_bulk_cost
        )
        battery_cost = (
            _line_item_cost(config.battery_pricing_mode, config.battery_cost, config.battery_bulk_cost)
            if config.battery_enabled
            else ZERO
        )
        soft_costs = (
            to_decimal(config.mounting_cost)
            + to_decimal(config.monitoring_cost)
            + to_decimal(config.labor_cost)
            + to_decimal(config.other_fees)
        )
        total = panel_hardware + inverter_cost + battery_cost + soft_costs
        return to_number(total)


def calculate_net_upfront_cost(config: "SolarConfig") -> float:
    """Return installed cost after the federal tax credit (USD)."""

    with engine_context():
        total = to_decimal(calculate_total_upfront_cost(config))
        # federal_tax_credit is expressed as a percent (e.g., 30 = 30%)
        credit_multiplier = ONE - to_decimal(config.federal_tax_credit) / HUNDRED
        return to_number(total * credit_multiplier)


def compute_loan_payments(principal: float, annual_rate_pct: float, term_years: float) -> LoanOutputs:
    """Amortize ``principal`` over ``term_years`` with monthly compounding.

    A zero or negative rate spreads the principal evenly. A zero term or
    principal means there is nothing to repay, so every figure is zero.
    """

    with engine_context():
        amount = to_decimal(principal)
        payments = to_decimal(term_years) * 12
        if amount <= 0 or payments <= 0:
            return LoanOutputs(0.0, 0.0, 0.0)

        monthly_rate = to_decimal(annual_rate_pct) / HUNDRED / 12
        if monthly_rate <= 0:
            monthly_payment = amount / payments
        else:
            try:
                growth = (ONE + monthly_rate) ** payments
                monthly_payment = amount * monthly_rate * growth / (growth - ONE)
            except Overflow:
                # Term so long the payment converges to interest only.
                monthly_payment = amount * monthly_rate

        total_cost = monthly_payment * payments
        return LoanOutputs(
            monthly_payment=to_number(monthly_payment),
            total_cost=to_number(total_cost),
            total_interest=to_number(total_cost - amount),
        )


def estimate_loan_rate(credit_score: float) -> float:
    """Return an indicative APR (%) for a credit score, or 0 when unknown."""

    score = to_decimal(credit_score)
    for floor, rate in LOAN_RATE_TIERS:
        if score >= floor:
            return rate
    return 0.0


def _resolve_break_even(
    projection: Sequence["ProjectionYear"], net_upfront_cost: Decimal
) -> Optional[Decimal]:
    """Return the unrounded fractional break-even year, or ``None``.

    The crossing year is interpolated linearly using the benefit earned in
    that year. When the cost is already covered at the start of the crossing
    year the fraction is zero. A crossing year that earned nothing cannot
    close a positive deficit, so it is reported as not reached.
    """

    previous_cumulative = ZERO
    for index, row in enumerate(projection):
        cumulative = to_decimal(row.cumulative_savings)
        if cumulative >= net_upfront_cost:
            deficit = net_upfront_cost - previous_cumulative
            if deficit <= 0:
                return Decimal(index)
            benefit = to_decimal(row.total_benefit)
            if benefit <= 0:
                return None
            return Decimal(index) + deficit / benefit
        previous_cumulative = cumulative
    return None


def build_financial_summary(
    projection: Sequence["ProjectionYear"],
    net_upfront_cost: float,
    config: Optional["SolarConfig"] = None,
) -> FinancialSummary:
    """Summarize a projection into total savings, break-even and ROI.

    Parameters
    ----------
    projection
        Ordered yearly rows produced by the projection engine.
    net_upfront_cost
        Installed cost after incentives (USD).
    config
        Optional configuration used to populate loan figures when the
        financing mode is ``"loan"``.
    """

    with engine_context():
        net_cost = to_decimal(net_upfront_cost)
        total_savings = to_decimal(projection[-1].cumulative_savings) if projection else ZERO

        break_even = _resolve_break_even(projection, net_cost)
        if break_even is None:
            break_even_year = None
            break_even_label = NOT_REACHED_LABEL
        else:
            break_even_year = float(round_half_up(break_even, 2))
            break_even_label = f"{round_half_up(break_even, 1)} years"

        roi_percent = total_savings / net_cost * HUNDRED if net_cost > 0 else ZERO

        loan = LoanOutputs(0.0, 0.0, 0.0)
        if config is not None and config.financing_mode == "loan":
            loan = compute_loan_payments(
                config.loan_amount, config.loan_interest_rate, config.loan_term_years
            )

        return FinancialSummary(
            total_savings=to_number(total_savings),
            break_even_year=break_even_year,
            break_even_label=break_even_label,
            net_upfront_cost=to_number(net_cost),
            roi_percent=to_number(roi_percent),
            monthly_loan_payment=loan.monthly_payment,
            total_loan_cost=loan.total_cost,
            total_interest_paid=loan.total_interest,
        )


__all__ = [
    "NOT_REACHED_LABEL",
    "LOAN_RATE_TIERS",
    "FinancialSummary",
    "LoanOutputs",
    "calculate_total_upfront_cost",
    "calculate_net_upfront_cost",
    "compute_loan_payments",
    "estimate_loan_rate",
    "build_financial_summary",
]
