"""
Error Taxonomy: Typed Failures for Gateways and the Points Engine
===================================================================

  • DataSourceError      upstream gateway failed or returned success=false
  • DivisionByZeroError  points share requested against an empty weighted TVL
  • InvalidInputError    negative, non-finite or out-of-range amounts

Each error also derives from the matching builtin (RuntimeError,
ZeroDivisionError, ValueError) so callers can catch either form.
"""


class MoonshotError(Exception):
    """Base class for every error raised by this project."""


class DataSourceError(MoonshotError, RuntimeError):
    """An upstream data source failed; carries the upstream message."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class DivisionByZeroError(MoonshotError, ZeroDivisionError):
    """Total weighted TVL is zero or TVL data is missing."""


class InvalidInputError(MoonshotError, ValueError):
    """Amount is negative, non-finite or outside accepted bounds."""
