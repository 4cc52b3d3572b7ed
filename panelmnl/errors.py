"""Exceptions raised when choice data or parameters are malformed."""


class ChoiceDataError(ValueError):
    """Base class for all data and parameter validation errors."""


class InvalidLayout(ChoiceDataError):
    """The ragged period layout violates a structural invariant."""


class DimensionMismatch(ChoiceDataError):
    """A parameter vector or matrix does not match the declared dimensions."""


class IndexOutOfRange(ChoiceDataError):
    """A period, choice, offset or brand index falls outside its valid range."""
