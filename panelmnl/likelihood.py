"""
Multinomial Logit Likelihood

Categorical-logit log-likelihood of observed choices over ragged per-period
choice sets, with an optional sum-to-zero brand intercept. Every function here
is pure: it only reads the layout and the parameter vectors it is given.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt
from scipy.special import logsumexp

from .errors import DimensionMismatch, InvalidLayout
from .layout import ChoiceLayout


def _as_vector(
    values: npt.ArrayLike, length: int, name: str
) -> npt.NDArray[np.float64]:
    arr = np.atleast_1d(np.asarray(values, dtype=np.float64))
    if arr.ndim != 1:
        raise DimensionMismatch(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.size != length:
        raise DimensionMismatch(f"{name} must have length {length}, got {arr.size}")
    return arr


def sum_to_zero(gamma_raw: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """
    Expand B-1 free brand effects into B effects that sum to zero.

    The first brand absorbs the residual: ``gamma = [-sum(gamma_raw), *gamma_raw]``.

    Args:
        gamma_raw: Free brand effects of length B-1.

    Returns:
        np.ndarray: Brand effects of length B.
    """
    raw = np.atleast_1d(np.asarray(gamma_raw, dtype=np.float64))
    if raw.ndim != 1:
        raise DimensionMismatch(
            f"gamma_raw must be one-dimensional, got shape {raw.shape}"
        )
    return np.concatenate([[-raw.sum()], raw])


def brand_intercepts(
    gamma_raw: npt.ArrayLike, layout: ChoiceLayout
) -> npt.NDArray[np.float64]:
    """Intercept inherited by every arena row from its brand (M,)."""
    if layout.brand is None or layout.B is None:
        raise InvalidLayout("layout has no brand assignment; brand intercepts need b")
    raw = _as_vector(gamma_raw, layout.B - 1, "gamma_raw")
    return sum_to_zero(raw)[layout.brand]


def utilities(
    beta: npt.ArrayLike,
    layout: ChoiceLayout,
    gamma_raw: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
    """
    Deterministic utility of every alternative row.

    Args:
        beta: Covariate coefficients (K,).
        layout: Validated choice layout.
        gamma_raw: Optional free brand effects (B-1,).

    Returns:
        np.ndarray: Utilities (M,).

    Raises:
        DimensionMismatch: If beta or gamma_raw have the wrong length.
        InvalidLayout: If gamma_raw is given but the layout has no brands.
    """
    beta = _as_vector(beta, layout.K, "beta")
    u = layout.X @ beta
    if gamma_raw is not None:
        u = u + brand_intercepts(gamma_raw, layout)
    return u


def period_logsumexp(
    u: npt.NDArray[np.float64], layout: ChoiceLayout
) -> npt.NDArray[np.float64]:
    """
    Log of the summed exponentiated utilities within each period (T,).

    Padding slots are set to -inf so they drop out of the sum; logsumexp
    subtracts the per-period max before exponentiating.
    """
    u = np.asarray(u, dtype=np.float64)
    if u.shape != (layout.M,):
        raise DimensionMismatch(
            f"utilities must have shape ({layout.M},), got {u.shape}"
        )
    index, mask = layout.padded_index()
    padded = np.where(mask, u[index], -np.inf)
    return logsumexp(padded, axis=1)


def log_probabilities(
    u: npt.NDArray[np.float64], layout: ChoiceLayout
) -> npt.NDArray[np.float64]:
    """Log-probability of each observed choice given row utilities (N,)."""
    lse = period_logsumexp(u, layout)
    return u[layout.chosen_row] - lse[layout.obs_period]


def loglik_contributions(
    beta: npt.ArrayLike,
    layout: ChoiceLayout,
    gamma_raw: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
    """Per-observation log-likelihood contributions (N,)."""
    return log_probabilities(utilities(beta, layout, gamma_raw), layout)


def loglik(beta: npt.ArrayLike, layout: ChoiceLayout) -> float:
    """
    Total log-likelihood of the observed choices without brand intercepts.

    Any brand assignment carried by the layout is ignored.

    Args:
        beta: Covariate coefficients (K,).
        layout: Validated choice layout.

    Returns:
        float: Sum over observations of ``u[Y] - logsumexp(u)`` within the
        observation's period.

    Example:
        >>> layout = ChoiceLayout([[0.0], [0.0]], J=[2], xstart=[1], t=[1], Y=[1])
        >>> round(loglik([0.0], layout), 4)
        -0.6931
    """
    return float(np.sum(loglik_contributions(beta, layout)))


def loglik_brand(
    beta: npt.ArrayLike, gamma_raw: npt.ArrayLike, layout: ChoiceLayout
) -> float:
    """
    Total log-likelihood with sum-to-zero brand intercepts.

    Utilities are ``gamma[b[m]] + X[m] @ beta`` with
    ``gamma = sum_to_zero(gamma_raw)``.

    Args:
        beta: Covariate coefficients (K,).
        gamma_raw: Free brand effects (B-1,).
        layout: Validated choice layout with a brand assignment.

    Returns:
        float: Total log-likelihood.

    Raises:
        InvalidLayout: If the layout has no brand assignment.
        DimensionMismatch: If beta or gamma_raw have the wrong length.
    """
    if not layout.has_brands:
        raise InvalidLayout("loglik_brand requires a layout with a brand assignment b")
    return float(np.sum(loglik_contributions(beta, layout, gamma_raw)))


def choice_probabilities(
    beta: npt.ArrayLike,
    layout: ChoiceLayout,
    gamma_raw: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
    """Softmax probability of every row within its period (M,)."""
    u = utilities(beta, layout, gamma_raw)
    lse = period_logsumexp(u, layout)
    return np.exp(u - lse[layout.row_period])


def loglik_gradient(
    beta: npt.ArrayLike,
    layout: ChoiceLayout,
    gamma_raw: npt.ArrayLike | None = None,
) -> npt.NDArray[np.float64]:
    """
    Analytical gradient of the total log-likelihood.

    Each row contributes ``(chosen count - expected count) * x_row`` where the
    expected count is the number of observations in its period times its
    choice probability. Brand effects collect the same residuals per brand and
    are chained through the sum-to-zero transform.

    Returns:
        np.ndarray: ``d/d beta`` (K,), followed by ``d/d gamma_raw`` (B-1,)
        when gamma_raw is given.
    """
    u = utilities(beta, layout, gamma_raw)
    lse = period_logsumexp(u, layout)
    probs = np.exp(u - lse[layout.row_period])

    chosen_counts = np.bincount(layout.chosen_row, minlength=layout.M)
    residual = chosen_counts - layout.obs_per_period[layout.row_period] * probs

    grad_beta = layout.X.T @ residual
    if gamma_raw is None:
        return grad_beta

    grad_gamma = np.bincount(layout.brand, weights=residual, minlength=layout.B)
    # gamma[0] = -sum(gamma_raw), gamma[k] = gamma_raw[k - 1]
    grad_raw = grad_gamma[1:] - grad_gamma[0]
    return np.concatenate([grad_beta, grad_raw])
