"""
config.py - Explicit per-program configuration

Every AddressDeriver and lifecycle call receives the program's identity and limits
through a ProgramConfig instead of reading module-level state.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Tuple, Union

from solders.pubkey import Pubkey

from .rent import Rent, DEFAULT_RENT


# Largest text field the tutorial programs accept.
DEFAULT_MAX_CONTENT_LENGTH = 1000

Options = Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True, slots=True)
class ProgramConfig:
    """
    Immutable, hashable configuration bound to one deployed program.

    Attributes:
        program_id: Identifier of the program that owns its records.
        rent: Rent parameters used when sizing balances.
        max_content_length: Upper bound for variable-length text fields.
        options: Program-specific settings (e.g. vault size, index capacity).
            Accepts a mapping or (key, value) pairs; stored as key-sorted pairs.

    Example:
        config = ProgramConfig(program_id, options={"index_capacity": 16})
        config.option("index_capacity")  # 16
    """
    program_id: Pubkey
    rent: Rent = DEFAULT_RENT
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH
    options: Union[Mapping[str, Any], Iterable[Tuple[str, Any]], Options] = ()

    def __post_init__(self):
        if self.max_content_length < 0:
            raise ValueError(f"max_content_length must be non-negative, got {self.max_content_length}")
        pairs = dict(self.options)
        for key in pairs:
            if not isinstance(key, str):
                raise TypeError(f"option keys must be str, got {key!r}")
        object.__setattr__(self, 'options', tuple(sorted(pairs.items())))

    def option(self, key: str, default: Any = None) -> Any:
        for name, value in self.options:
            if name == key:
                return value
        return default

    def with_options(self, **options: Any) -> ProgramConfig:
        """Return a copy with options merged over the current ones."""
        return replace(self, options={**dict(self.options), **options})

    def with_rent(self, rent: Rent) -> ProgramConfig:
        return replace(self, rent=rent)
