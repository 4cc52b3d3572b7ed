"""
panelmnl: Multinomial Logit over Ragged Panel Choice Sets

A Python library for the categorical-logit likelihood of weekly choices among
the alternatives on offer in each period, with optional sum-to-zero brand
intercepts. Sampler declarations for PyMC live in ``panelmnl.bayes``.
"""

from .errors import ChoiceDataError, DimensionMismatch, IndexOutOfRange, InvalidLayout
from .layout import ChoiceLayout
from .likelihood import (
    choice_probabilities,
    loglik,
    loglik_brand,
    loglik_contributions,
    loglik_gradient,
    sum_to_zero,
    utilities,
)
from .model import BrandLogit
from .simulate import simulate_panel

__all__ = [
    "BrandLogit",
    "ChoiceDataError",
    "ChoiceLayout",
    "DimensionMismatch",
    "IndexOutOfRange",
    "InvalidLayout",
    "choice_probabilities",
    "loglik",
    "loglik_brand",
    "loglik_contributions",
    "loglik_gradient",
    "simulate_panel",
    "sum_to_zero",
    "utilities",
]
