"""
errors.py
Exceptions raised by the membership core.
"""

from __future__ import annotations


class MembershipError(Exception):
    """Base class for every error the membership core reports."""


class InvalidInputError(MembershipError, ValueError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input.")


class MemberNotFoundError(MembershipError, KeyError):
    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(card_id)

    def __str__(self) -> str:
        return f"No member with card ID {self.card_id}."


class PolicyViolationError(MembershipError):
    """A business rule refused the request; nothing was changed."""


class MemberStillActiveError(PolicyViolationError):
    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(f"Member {card_id} is still active and cannot be deleted.")


class AlreadyInactiveError(PolicyViolationError):
    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(f"Member {card_id} is already expired or deactivated.")


class CapacityError(MembershipError):
    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"Member store is full ({capacity} records).")
