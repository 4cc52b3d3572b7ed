"""
Synthetic Panel Data

Generates weekly panels of ragged choice sets following the Random Utility
Maximization (RUM) principle: each shopper picks the alternative with the
highest Gumbel-perturbed utility among those on offer in their week.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from .layout import ChoiceLayout
from .likelihood import sum_to_zero


def simulate_panel(
    N: int,
    T: int,
    K: int,
    B: int | None = None,
    J_range: tuple[int, int] = (2, 6),
    true_beta: npt.ArrayLike | None = None,
    true_gamma_raw: npt.ArrayLike | None = None,
    seed: int | None = 42,
    rng: np.random.Generator | None = None,
) -> tuple[ChoiceLayout, npt.NDArray[np.float64], npt.NDArray[np.float64] | None]:
    """
    Simulate a panel of choices over per-period choice sets.

    The simulation process:
    1. Draws a choice-set size J[t] uniformly from J_range for every period and
       lays the periods out contiguously in one covariate arena
    2. Generates covariates X ~ N(0, 1) and, if B is given, a brand per row
       (every brand appears at least once when there are enough rows)
    3. Computes utilities X @ beta (+ sum-to-zero brand intercepts)
    4. Assigns every observation a random period, adds Gumbel noise to that
       period's utilities and records the best alternative as the choice

    Args:
        N (int): Number of observations.
        T (int): Number of periods.
        K (int): Number of covariates.
        B (int, optional): Number of brands. None simulates without brands.
        J_range (tuple): Inclusive (low, high) bounds of the choice-set size.
        true_beta (array, optional): True coefficients (K,). If None, drawn
                                     uniformly in [-1, 1].
        true_gamma_raw (array, optional): True free brand effects (B-1,). If
                                          None, drawn uniformly in [-1, 1].
        seed (int | None): Random seed for reproducibility. Ignored if rng is provided.
        rng (np.random.Generator, optional): Use an existing RNG instead of seed.

    Returns:
        tuple: (layout, true_beta, true_gamma_raw)
            - layout (ChoiceLayout): Simulated data, brands attached when B is given
            - true_beta (np.ndarray): Coefficients used in simulation (K,)
            - true_gamma_raw (np.ndarray | None): Free brand effects (B-1,)

    Raises:
        ValueError: If N, T, K, B or J_range are invalid, or if the true
                    parameters have the wrong shape.
    """
    if N < 1:
        raise ValueError(f"N must be >= 1, got {N}")
    if T < 1:
        raise ValueError(f"T must be >= 1, got {T}")
    if K < 1:
        raise ValueError(f"K must be >= 1, got {K}")
    if B is not None and B < 2:
        raise ValueError(f"B must be >= 2, got {B}")
    low, high = J_range
    if low < 2 or high < low:
        raise ValueError(f"J_range must satisfy 2 <= low <= high, got {J_range}")
    if true_gamma_raw is not None and B is None:
        raise ValueError("true_gamma_raw requires B")

    rng = rng or np.random.default_rng(seed)

    J = rng.integers(low, high + 1, size=T)
    M = int(J.sum())
    starts = np.cumsum(J) - J

    X = rng.normal(size=(M, K))

    if true_beta is None:
        beta = rng.uniform(-1, 1, K)
    else:
        beta = np.asarray(true_beta, dtype=np.float64)
        if beta.shape != (K,):
            raise ValueError(f"true_beta must have shape ({K},), got {beta.shape}")

    u = X @ beta

    b = None
    gamma_raw = None
    if B is not None:
        if M >= B:
            labels = np.concatenate(
                [np.arange(1, B + 1), rng.integers(1, B + 1, size=M - B)]
            )
            b = rng.permutation(labels)
        else:
            b = rng.integers(1, B + 1, size=M)

        if true_gamma_raw is None:
            gamma_raw = rng.uniform(-1, 1, B - 1)
        else:
            gamma_raw = np.asarray(true_gamma_raw, dtype=np.float64)
            if gamma_raw.shape != (B - 1,):
                raise ValueError(
                    f"true_gamma_raw must have shape ({B - 1},), got {gamma_raw.shape}"
                )

        u = u + sum_to_zero(gamma_raw)[b - 1]

    # Padded (T, max J) view of the utilities; padding never wins the argmax
    slots = np.arange(high)
    mask = slots[np.newaxis, :] < J[:, np.newaxis]
    index = np.where(mask, starts[:, np.newaxis] + slots[np.newaxis, :], 0)
    u_padded = np.where(mask, u[index], -np.inf)

    t = rng.integers(1, T + 1, size=N)
    noise = rng.gumbel(loc=0, scale=1, size=(N, high))
    Y = np.argmax(u_padded[t - 1] + noise, axis=1) + 1

    layout = ChoiceLayout(X, J, starts + 1, t, Y, b=b, B=B)
    return layout, beta, gamma_raw
