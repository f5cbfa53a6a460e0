"""Input validation package."""

from omomoney.validation.validator import InputValidator, get_input_validator

__all__ = ["InputValidator", "get_input_validator"]
