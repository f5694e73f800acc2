"""Savings calculator - micro-saving amounts for expense transactions"""

import logging
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR
from typing import Dict, Iterable, Optional

from savemate_engine.domain.exceptions import InvalidConfigurationError
from savemate_engine.domain.models import SavingComputation, SavingsConfiguration, SavingStrategy

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MAX_REASONABLE_SAVING_RATIO = Decimal("0.5")


def round_up_to_multiple(amount: Optional[Decimal], multiple: Optional[int]) -> Optional[Decimal]:
    """
    Round an amount up to the next multiple.

    Example:
        4500 with multiple 1000 -> 5000
        5000 with multiple 1000 -> 5000 (already a multiple)

    Returns the amount unchanged when multiple is None, zero or negative.
    """
    if amount is None or multiple is None or multiple <= 0:
        return amount

    step = Decimal(multiple)
    return (amount / step).to_integral_value(rounding=ROUND_CEILING) * step


def round_down_to_multiple(amount: Optional[Decimal], multiple: Optional[int]) -> Optional[Decimal]:
    """Round an amount down to the previous multiple (4800/1000 -> 4000)"""
    if amount is None or multiple is None or multiple <= 0:
        return amount

    step = Decimal(multiple)
    return (amount / step).to_integral_value(rounding=ROUND_FLOOR) * step


def saving_by_rounding(original: Optional[Decimal], rounded: Optional[Decimal]) -> Decimal:
    """Rounded minus original, never negative"""
    if original is None or rounded is None:
        return ZERO
    return max(ZERO, rounded - original)


def saving_by_percentage(amount: Optional[Decimal], percentage: Optional[Decimal]) -> Decimal:
    """amount * percentage / 100, never negative"""
    if amount is None or percentage is None or percentage <= 0:
        return ZERO
    return max(ZERO, amount * Decimal(percentage) / HUNDRED)


def validate_configuration(config: SavingsConfiguration) -> None:
    """
    Reject settings the active strategy cannot work with.

    Raises:
        InvalidConfigurationError: ROUNDING without a positive multiple, or
            PERCENTAGE outside (0, 100]
    """
    if config.strategy == SavingStrategy.ROUNDING:
        if config.rounding_multiple is None or config.rounding_multiple <= 0:
            raise InvalidConfigurationError(f"Rounding multiple must be positive, got {config.rounding_multiple}")
    elif config.strategy == SavingStrategy.PERCENTAGE:
        percentage = config.saving_percentage
        if percentage is None or percentage <= 0 or percentage > HUNDRED:
            raise InvalidConfigurationError(f"Saving percentage must be in (0, 100], got {percentage}")

    if config.min_safe_balance is not None and config.min_safe_balance < 0:
        raise InvalidConfigurationError("Minimum safe balance cannot be negative")


def calculate_saving(amount: Decimal, config: SavingsConfiguration) -> SavingComputation:
    """
    Compute the saving for an EXPENSE amount under the user's strategy.

    ROUNDING records both original and rounded amounts; PERCENTAGE records
    only the saving. A missing strategy or degenerate parameter yields a
    zero saving rather than an error.
    """
    if config.strategy == SavingStrategy.ROUNDING:
        rounded = round_up_to_multiple(amount, config.rounding_multiple)
        return SavingComputation(
            original_amount=amount,
            rounded_amount=rounded,
            saving_amount=saving_by_rounding(amount, rounded),
        )

    if config.strategy == SavingStrategy.PERCENTAGE:
        return SavingComputation(
            original_amount=amount,
            saving_amount=saving_by_percentage(amount, config.saving_percentage),
        )

    return SavingComputation(original_amount=amount, saving_amount=ZERO)


def find_optimal_rounding_multiple(amount: Optional[Decimal]) -> int:
    """
    Suggest a rounding multiple scaled to the size of the expense.

    Tiers:
    - < 5,000:  1,000
    - < 20,000: 5,000
    - < 50,000: 10,000
    - otherwise: 20,000
    """
    if amount is None or amount <= 0:
        return 1000
    if amount < 5000:
        return 1000
    elif amount < 20000:
        return 5000
    elif amount < 50000:
        return 10000
    else:
        return 20000


def rounding_impact(amounts: Iterable[Optional[Decimal]], multiple: Optional[int]) -> Decimal:
    """Total saving a rounding rule would have produced over past expenses"""
    if multiple is None:
        return ZERO

    total = ZERO
    for amount in amounts:
        if amount is not None and amount > 0:
            total += saving_by_rounding(amount, round_up_to_multiple(amount, multiple))
    return total


def simulate_scenarios(amount: Decimal) -> Dict[str, object]:
    """What-if comparison of the common strategies for one amount"""
    scenarios: Dict[str, object] = {"original_amount": amount}
    for multiple in (1000, 5000, 10000):
        rounded = round_up_to_multiple(amount, multiple)
        scenarios[f"rounding_{multiple}"] = {
            "rounded": rounded,
            "saving": saving_by_rounding(amount, rounded),
        }
    scenarios["percentage_10"] = {"saving": saving_by_percentage(amount, Decimal("10"))}
    return scenarios


def is_saving_reasonable(original: Optional[Decimal], saving: Optional[Decimal]) -> bool:
    """Sanity check: the saving should not exceed half of the expense"""
    if original is None or saving is None:
        return False

    reasonable = ZERO <= saving <= original * MAX_REASONABLE_SAVING_RATIO
    if not reasonable:
        logger.warning(
            "Unreasonable saving detected",
            extra={"original_amount": str(original), "saving_amount": str(saving)},
        )
    return reasonable
