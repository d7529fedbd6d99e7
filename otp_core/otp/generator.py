"""
OTP Code Generator
==================
Cryptographically strong numeric codes.
"""

import secrets


def generate_code(length: int = 6) -> str:
    """
    Generate a uniformly distributed numeric code.

    The leading digit is never zero, so the code is always exactly
    ``length`` digits (100000-999999 for the default length).

    Args:
        length: Number of digits

    Returns:
        Code string
    """
    if length < 1:
        raise ValueError("Code length must be at least 1")

    low = 10 ** (length - 1)
    span = 9 * low
    return str(low + secrets.randbelow(span))
