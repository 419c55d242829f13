"""
Exact decimal arithmetic for the expected-reward figure.
No binary float is multiplied anywhere on this path: floats coming from the
database are converted through their shortest repr before they are used.
"""
from decimal import Decimal
from typing import Union

DecimalLike = Union[Decimal, int, float, str]

SECONDS_PER_DAY = Decimal(86400)
MEGA = Decimal(1000000)


def to_decimal(value: DecimalLike | None) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # Decimal(0.1) would carry the float's binary expansion
        return Decimal(repr(value))
    return Decimal(value)


def auxiliary_parameter(avg_proof_target: DecimalLike) -> Decimal:
    """86400 / avg_proof_target, or zero when the target is not positive."""
    target = to_decimal(avg_proof_target)
    if target > 0:
        return SECONDS_PER_DAY / target
    return Decimal(0)


def reward_per_unit(avg_reward: DecimalLike, aux_parameter: DecimalLike) -> Decimal:
    # Order matters once precision is finite: reward x aux first, then 10^6.
    return to_decimal(avg_reward) * to_decimal(aux_parameter) * MEGA


def expected_reward(per_unit: DecimalLike, last_24h_power: DecimalLike) -> Decimal:
    return to_decimal(per_unit) * to_decimal(last_24h_power)


def format_decimal(value: DecimalLike) -> str:
    """Plain fixed-point text without trailing zeros, e.g. 2000.000 -> "2000"."""
    d = to_decimal(value)
    if d == 0:
        return "0"
    return format(d.normalize(), "f")
