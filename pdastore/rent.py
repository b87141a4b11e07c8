"""
rent.py - Rent-exempt balance sizing

A record must hold enough lamports to be exempt from periodic reclamation by the
host ledger. The requirement depends only on the record's byte length and on the
host-supplied rate parameters held by Rent.

    minimum_balance(n) = floor((storage_overhead + n) * lamports_per_byte_year * threshold)

All arithmetic is exact (integers and Decimal); results leaving the u64 range raise
ArithmeticOverflow rather than saturating.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN

from .core import U64_MAX, ArithmeticOverflow


# Host ledger defaults
DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
DEFAULT_EXEMPTION_THRESHOLD = Decimal("2.0")
ACCOUNT_STORAGE_OVERHEAD = 128


@dataclass(frozen=True, slots=True)
class Rent:
    """
    Host-ledger rent rate parameters.

    The exemption threshold is folded into minimum_balance(), which already returns
    the exempt balance (per-year rent times exemption_threshold). is_exempt()
    compares against that figure and does not apply the threshold a second time.

    Attributes:
        lamports_per_byte_year: Cost of storing one byte for one year.
        exemption_threshold: Years of rent an account must hold to be exempt.
        account_storage_overhead: Bytes charged per account on top of its data.
    """
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: Decimal = DEFAULT_EXEMPTION_THRESHOLD
    account_storage_overhead: int = ACCOUNT_STORAGE_OVERHEAD

    def __post_init__(self):
        if self.lamports_per_byte_year < 0:
            raise ValueError(f"lamports_per_byte_year must be non-negative, got {self.lamports_per_byte_year}")
        if not isinstance(self.exemption_threshold, Decimal):
            object.__setattr__(self, 'exemption_threshold', Decimal(str(self.exemption_threshold)))
        if self.exemption_threshold < 0:
            raise ValueError(f"exemption_threshold must be non-negative, got {self.exemption_threshold}")
        if self.account_storage_overhead < 0:
            raise ValueError(f"account_storage_overhead must be non-negative, got {self.account_storage_overhead}")

    def minimum_balance(self, byte_length: int) -> int:
        """
        Return the lamports a record of byte_length bytes must hold to be rent exempt.

        Raises:
            ArithmeticOverflow: If byte_length is negative or the result exceeds u64.
        """
        if byte_length < 0 or byte_length > U64_MAX:
            raise ArithmeticOverflow(f"byte_length {byte_length} outside the u64 range")
        per_period = (self.account_storage_overhead + byte_length) * self.lamports_per_byte_year
        exempt = (Decimal(per_period) * self.exemption_threshold).to_integral_value(rounding=ROUND_DOWN)
        if exempt > U64_MAX:
            raise ArithmeticOverflow(f"minimum balance for {byte_length} bytes exceeds u64")
        return int(exempt)

    def is_exempt(self, balance: int, byte_length: int) -> bool:
        """Return True if balance covers the rent-exempt minimum for byte_length."""
        return balance >= self.minimum_balance(byte_length)


DEFAULT_RENT = Rent()
