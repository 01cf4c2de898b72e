"""Result validation package."""

from receipt_interpreter.validation.validator import ResultValidator

__all__ = ["ResultValidator"]
