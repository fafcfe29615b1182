"""Roles and email canonicalisation.

Learn: Both live at the store boundary. Every read and write of an email goes
through canonical_email() so registration, password sign-in and OAuth sign-in
can never disagree about which identity an address belongs to.
"""

import enum
from typing import Optional


class Role(str, enum.Enum):
    USER = "USER"
    SUPER = "SUPER"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Return the Role for value, or None if it is empty or unknown."""
        try:
            return cls(value) if value else None
        except ValueError:
            return None


def canonical_email(raw: str) -> str:
    return raw.strip().lower()
