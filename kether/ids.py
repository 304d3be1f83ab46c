"""Account identifiers.

A UserId wraps the raw 64-bit account id used on the wire. The textual
form recognised in chat is the bracketed ``[U:1:<account>]`` notation.

64-bit layout (high to low):
  universe (8 bits) | account type (4 bits) | instance (20 bits) | account (32 bits)
"""

import re
from dataclasses import dataclass

UNIVERSE_PUBLIC = 1
ACCOUNT_TYPE_INDIVIDUAL = 1
INSTANCE_DESKTOP = 1

_ACCOUNT_MASK = 0xFFFFFFFF
_INSTANCE_MASK = 0xFFFFF

_BRACKETED_RE = re.compile(r'^\[U:([0-9]+):([0-9]+)(?::([0-9]+))?\]$')


@dataclass(frozen=True, order=True)
class UserId:
    """Opaque 64-bit account identifier. Compared and hashed by raw value."""

    raw: int

    def __post_init__(self):
        if not 0 <= self.raw < 2 ** 64:
            raise ValueError(f"UserId out of 64-bit range: {self.raw}")

    @classmethod
    def from_parts(
        cls,
        account_id: int,
        universe: int = UNIVERSE_PUBLIC,
        account_type: int = ACCOUNT_TYPE_INDIVIDUAL,
        instance: int = INSTANCE_DESKTOP,
    ) -> "UserId":
        if not 0 <= account_id <= _ACCOUNT_MASK:
            raise ValueError(f"account id out of range: {account_id}")
        if not 0 <= universe <= 0xFF:
            raise ValueError(f"universe out of range: {universe}")
        if not 0 <= account_type <= 0xF:
            raise ValueError(f"account type out of range: {account_type}")
        if not 0 <= instance <= _INSTANCE_MASK:
            raise ValueError(f"instance out of range: {instance}")
        raw = (universe << 56) | (account_type << 52) | (instance << 32) | account_id
        return cls(raw)

    @classmethod
    def parse(cls, text: str) -> "UserId":
        """Parse ``[U:<universe>:<account>]`` or ``[U:<universe>:<account>:<instance>]``.

        Raises:
            ValueError: if the text is not a bracketed individual id.
        """
        m = _BRACKETED_RE.match(text.strip())
        if not m:
            raise ValueError(f"not a bracketed user id: {text!r}")
        universe = int(m.group(1))
        account_id = int(m.group(2))
        instance = int(m.group(3)) if m.group(3) is not None else INSTANCE_DESKTOP
        return cls.from_parts(account_id, universe=universe, instance=instance)

    @property
    def account_id(self) -> int:
        return self.raw & _ACCOUNT_MASK

    @property
    def instance(self) -> int:
        return (self.raw >> 32) & _INSTANCE_MASK

    @property
    def account_type(self) -> int:
        return (self.raw >> 52) & 0xF

    @property
    def universe(self) -> int:
        return (self.raw >> 56) & 0xFF

    def bracketed(self) -> str:
        """Render as ``[U:1:<account>]``; non-default instances are appended."""
        if self.instance != INSTANCE_DESKTOP:
            return f"[U:{self.universe}:{self.account_id}:{self.instance}]"
        return f"[U:{self.universe}:{self.account_id}]"

    def __int__(self) -> int:
        return self.raw

    def __str__(self) -> str:
        return self.bracketed()


def format_user_id(user_id: UserId) -> str:
    """Format a user id for display."""
    return user_id.bracketed()


def parse_user_id(text: str) -> UserId:
    """Parse a user id from its bracketed form. Raises ValueError on failure."""
    return UserId.parse(text)
