"""
Lending pool rate math (Decimal only).
"""

from decimal import Decimal, localcontext

from app.domain.indicators.fixed_point import DECIMAL_CONTEXT

ZERO = Decimal("0")
ONE = Decimal("1")
DAYS_PER_YEAR = 365


def utilization(total_liabilities: Decimal, total_assets: Decimal) -> Decimal:
    """
    Borrowed value over supplied value. An empty pool has zero utilization.
    """
    if total_assets == ZERO:
        return ZERO
    with localcontext(DECIMAL_CONTEXT):
        return total_liabilities / total_assets


def borrow_curve(u: Decimal, u_opt: Decimal, plateau: Decimal, max_rate: Decimal) -> Decimal:
    """
    Three-segment borrow rate curve.

    Args:
        u: pool utilization
        u_opt: optimal utilization breakpoint
        plateau: rate reached at u_opt
        max_rate: rate reached at full utilization

    Returns:
        simple annual borrow rate
    """
    if u <= ZERO:
        return ZERO
    with localcontext(DECIMAL_CONTEXT):
        if u <= u_opt:
            return plateau * (u / u_opt)
        if u >= ONE:
            return max_rate
        span = ONE - u_opt
        return plateau + (max_rate - plateau) * ((u - u_opt) / span)


def apr_to_apy(apr: Decimal, periods_per_year: int = DAYS_PER_YEAR) -> Decimal:
    """(1 + apr / n) ** n - 1"""
    if apr == ZERO:
        return ZERO
    if periods_per_year <= 0:
        raise ValueError("periods_per_year must be positive")
    with localcontext(DECIMAL_CONTEXT):
        n = Decimal(periods_per_year)
        return (ONE + apr / n) ** periods_per_year - ONE
