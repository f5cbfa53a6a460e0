"""
Input Validation

DESIGN DECISION: Validation is split into a yes/no check and a message
lookup for every field:

- is_valid_*  -> bool, for quick gating (e.g. enabling a save button)
- *_validation_message -> Optional[str], None when the value is fine

The record models call the message functions from their field validators,
so the same rule produces the same wording wherever it fails.

IMPORTANT: Validation NEVER silently fixes issues.
Whitespace is trimmed before measuring, but the caller keeps its input.
"""

import re
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from omomoney.config import AVAILABLE_CURRENCIES, ValidationSettings, get_settings


EMAIL_PATTERN = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")


class InputValidator:
    """
    Validates user-entered names, emails, currencies and amounts.

    Length limits come from ValidationSettings.
    """

    def __init__(self, settings: Optional[ValidationSettings] = None):
        self._settings = settings or get_settings().validation

    # -------------------------------------------------------------------------
    # Names
    # -------------------------------------------------------------------------

    def is_valid_name(self, name: str) -> bool:
        return self.name_validation_message(name) is None

    def name_validation_message(self, name: str) -> Optional[str]:
        trimmed = name.strip()

        if not trimmed:
            return "Name is required"

        if len(trimmed) < self._settings.min_name_length:
            return (
                f"Name must be at least "
                f"{self._settings.min_name_length} characters"
            )

        if len(trimmed) > self._settings.max_name_length:
            return (
                f"Name must be at most "
                f"{self._settings.max_name_length} characters"
            )

        return None

    # -------------------------------------------------------------------------
    # Emails (optional field)
    # -------------------------------------------------------------------------

    def is_valid_email(self, email: str) -> bool:
        """Format check only. An empty email is valid because it is optional."""
        trimmed = email.strip()
        if not trimmed:
            return True
        return EMAIL_PATTERN.fullmatch(trimmed) is not None

    def email_validation_message(self, email: str) -> Optional[str]:
        trimmed = email.strip()

        if not trimmed:
            return None

        if not self.is_valid_email(trimmed):
            return "Please enter a valid email"

        if len(trimmed) < self._settings.min_email_length:
            return (
                f"Email must be at least "
                f"{self._settings.min_email_length} characters"
            )

        if len(trimmed) > self._settings.max_email_length:
            return (
                f"Email must be at most "
                f"{self._settings.max_email_length} characters"
            )

        return None

    # -------------------------------------------------------------------------
    # Currency and amounts
    # -------------------------------------------------------------------------

    def is_valid_currency(self, currency: str) -> bool:
        return currency in AVAILABLE_CURRENCIES

    def currency_validation_message(self, currency: str) -> Optional[str]:
        if not self.is_valid_currency(currency):
            return "Please select a valid currency"
        return None

    def is_valid_amount(self, amount: Decimal) -> bool:
        if amount.is_nan():
            return False
        return amount >= 0

    def amount_validation_message(self, amount: Decimal) -> Optional[str]:
        if not self.is_valid_amount(amount):
            return "Amount must be greater than or equal to zero"
        return None


@lru_cache()
def get_input_validator() -> InputValidator:
    """
    Shared validator built from the current settings.

    Call get_input_validator.cache_clear() after changing settings.
    """
    return InputValidator()
