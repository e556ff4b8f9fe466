import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from x402_avm.chains import get_default_asset
from x402_avm.types import (
    Money,
    PaymentPayload,
    PaymentRequirements,
    Price,
    TokenAmount,
    TokenAsset,
)

x402_VERSION = 1

MIN_MONEY = Decimal("0.0001")
MAX_MONEY = Decimal("999999999")

_NON_NUMERIC = re.compile(r"[^0-9.-]+")


@dataclass(frozen=True)
class AtomicAmount:
    """A price resolved to atomic units of a concrete asset"""

    max_amount_required: str
    asset: TokenAsset


@dataclass(frozen=True)
class PriceError:
    """A price that could not be resolved. Carried as data, never raised."""

    error: str


def parse_money(value: Money) -> Decimal:
    """Parse a human money value ("$3.10", 0.10, "0.001") into a Decimal.

    Raises:
        ValueError: If the value is not a number in [0.0001, 999999999]
    """
    if isinstance(value, bool):
        raise ValueError("Must be a number")
    if isinstance(value, str):
        value = _NON_NUMERIC.sub("", value)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError("Must be a number")
    if not amount.is_finite():
        raise ValueError("Must be a number")
    if amount < MIN_MONEY or amount > MAX_MONEY:
        raise ValueError(f"Must be between {MIN_MONEY} and {MAX_MONEY}")
    return amount


def to_atomic_amount(amount: Decimal, decimals: int) -> str:
    """Scale a decimal amount to atomic units, truncating any remainder."""
    return str(int(amount * (Decimal(10) ** decimals)))


def atomic_to_decimal(amount: Union[str, int], decimals: int) -> Decimal:
    """Convert atomic units back to a decimal amount."""
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


def process_price_to_atomic_amount(
    price: Price, network: str
) -> Union[AtomicAmount, PriceError]:
    """Resolve a price into an atomic amount and asset for a network.

    Args:
        price: Money (USD string/number, paid in the network's default asset)
            or a TokenAmount with explicit asset information
        network: The network to resolve the default asset for

    Returns:
        AtomicAmount on success, PriceError otherwise
    """
    if isinstance(price, dict):
        try:
            price = TokenAmount.model_validate(price)
        except ValueError as e:
            return PriceError(error=f"Invalid token amount: {e}")

    if isinstance(price, TokenAmount):
        return AtomicAmount(
            max_amount_required=to_atomic_amount(price.amount, price.asset.decimals),
            asset=price.asset,
        )

    try:
        amount = parse_money(price)
    except ValueError as e:
        return PriceError(
            error=f'Invalid price (price: {price}). Must be in the form "$3.10", 0.10, "0.001", {e}'
        )

    try:
        default_asset = get_default_asset(network)
    except ValueError as e:
        return PriceError(error=str(e))

    asset = TokenAsset(id=default_asset["id"], decimals=default_asset["decimals"])
    return AtomicAmount(
        max_amount_required=to_atomic_amount(amount, asset.decimals),
        asset=asset,
    )


def find_matching_payment_requirements(
    payment_requirements: list[PaymentRequirements],
    payment: PaymentPayload,
) -> Optional[PaymentRequirements]:
    """Find the first requirements entry with the payment's scheme and network."""
    for requirements in payment_requirements:
        if (
            requirements.scheme == payment.scheme
            and requirements.network == payment.network
        ):
            return requirements
    return None
