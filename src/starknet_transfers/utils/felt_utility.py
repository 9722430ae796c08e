"""
Felt utilities for Starknet event payloads.

Starknet events carry their data as field elements (felts). Values wider than
a felt, such as u256 token amounts, are split into two 128-bit limbs.
"""

from decimal import Context, Decimal
from typing import Any

from web3 import Web3

# Limb width used by the Cairo u256 struct
LIMB_BITS = 128
LIMB_MAX = 2 ** LIMB_BITS

# Selectors are truncated to 250 bits
SELECTOR_MASK = 2 ** 250 - 1


def parse_felt(value: Any) -> int:
    """
    Parse a field element as a non-negative integer.

    Felts can come in different formats depending on the provider:
    - As integers: 1000
    - As hex strings: "0x3e8"
    - As decimal strings: "1000"

    :param value: The felt to parse
    :return: Integer value of the felt
    :raises ValueError: If the value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid felt: {value!r}")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == '0x':
            if len(text) == 2:
                raise ValueError(f"Invalid felt: {value!r}")
            result = Web3.to_int(hexstr=text)
        elif text.isdigit():
            result = int(text)
        else:
            raise ValueError(f"Invalid felt: {value!r}")
    else:
        raise ValueError(f"Invalid felt type: {type(value).__name__}")

    if result < 0:
        raise ValueError(f"Felt must be non-negative, got {result}")
    return result


def uint256_from_limbs(low: Any, high: Any) -> int:
    """
    Rebuild a 256-bit unsigned integer from its low and high 128-bit limbs.

    :param low: Low limb (felt)
    :param high: High limb (felt)
    :return: high * 2**128 + low
    :raises ValueError: If a limb is not a valid felt or does not fit in 128 bits
    """
    low_value = parse_felt(low)
    high_value = parse_felt(high)

    if low_value >= LIMB_MAX:
        raise ValueError(f"Low limb exceeds 128 bits: {low_value}")
    if high_value >= LIMB_MAX:
        raise ValueError(f"High limb exceeds 128 bits: {high_value}")

    return (high_value << LIMB_BITS) | low_value


def format_units(value: int, decimals: int) -> Decimal:
    """
    Scale a raw integer amount down by 10**decimals.

    The shift is done on a Decimal with enough precision to hold every digit
    of the value, so large amounts are never rounded.
    """
    if decimals < 0:
        raise ValueError(f"Decimals must be non-negative, got {decimals}")
    context = Context(prec=max(len(str(abs(value))), 1))
    return Decimal(value).scaleb(-decimals, context=context)


def get_selector_from_name(name: str) -> str:
    """
    Compute the Starknet selector of an entry point or event name.

    :param name: Event name, e.g. "Transfer"
    :return: Selector as a 0x-prefixed hex string
    """
    digest = Web3.keccak(text=name)
    return hex(int.from_bytes(digest, byteorder='big') & SELECTOR_MASK)
