"""
PyMC declarations of the brand logit models.

The log-likelihood is the same expression as ``panelmnl.likelihood`` written
in pytensor so that PyMC's NUTS sampler can differentiate it. Sampling,
adaptation and diagnostics all belong to PyMC and ArviZ.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import pymc as pm
import pytensor.tensor as pt
from pytensor.tensor.variable import TensorVariable

from .errors import DimensionMismatch, InvalidLayout
from .layout import ChoiceLayout

logger = logging.getLogger(__name__)


def sum_to_zero_tensor(gamma_raw: TensorVariable) -> TensorVariable:
    """Symbolic counterpart of ``likelihood.sum_to_zero``: brand 1 takes the residual."""
    return pt.concatenate([-pt.sum(gamma_raw, keepdims=True), gamma_raw])


def choice_loglik_tensor(
    layout: ChoiceLayout,
    beta: Any,
    gamma: Any | None = None,
) -> TensorVariable:
    """
    Symbolic total log-likelihood of the observed choices.

    Args:
        layout: Validated choice layout.
        beta: Tensor (or array) of covariate coefficients (K,).
        gamma: Optional tensor of full brand effects (B,).

    Returns:
        TensorVariable: Scalar log-likelihood.
    """
    index, mask = layout.padded_index()

    u = pt.dot(pt.as_tensor_variable(layout.X), pt.as_tensor_variable(beta))
    if gamma is not None:
        if layout.brand is None:
            raise InvalidLayout("layout has no brand assignment; brand intercepts need b")
        u = u + pt.as_tensor_variable(gamma)[np.asarray(layout.brand)]

    padded = pt.switch(np.asarray(mask), u[np.asarray(index)], -np.inf)
    lse = pt.logsumexp(padded, axis=1)
    return pt.sum(
        u[np.asarray(layout.chosen_row)] - lse[np.asarray(layout.obs_period)]
    )


def build_model(
    layout: ChoiceLayout,
    brand_intercepts: bool = False,
    beta_sigma: float = 1.0,
    gamma_sigma: float = 1.0,
    covariate_names: Sequence[str] | None = None,
) -> pm.Model:
    """
    Declare the logit model for the sampler.

    Priors are ``beta ~ Normal(0, beta_sigma)`` and, with brand intercepts,
    ``gamma_raw ~ Normal(0, gamma_sigma)`` on the B-1 free effects. The full
    brand vector is recorded as the deterministic ``gamma``. The likelihood
    enters the joint density as the potential ``choice_loglik``.

    Args:
        layout: Validated choice layout.
        brand_intercepts: Include sum-to-zero brand intercepts.
        beta_sigma: Prior scale of the covariate coefficients.
        gamma_sigma: Prior scale of the free brand effects.
        covariate_names: Optional labels for the covariate dimension.

    Returns:
        pm.Model: The model, ready for ``pm.sample``.
    """
    if brand_intercepts and not layout.has_brands:
        raise InvalidLayout(
            "brand_intercepts=True requires a layout with a brand assignment b"
        )
    if beta_sigma <= 0 or gamma_sigma <= 0:
        raise ValueError(
            f"prior scales must be > 0, got beta_sigma={beta_sigma}, gamma_sigma={gamma_sigma}"
        )

    if covariate_names is None:
        covariate_names = [f"x{k + 1}" for k in range(layout.K)]
    elif len(covariate_names) != layout.K:
        raise DimensionMismatch(
            f"covariate_names must have length {layout.K}, got {len(covariate_names)}"
        )

    coords: dict[str, list[str]] = {"covariate": list(covariate_names)}
    if brand_intercepts:
        brands = [f"brand{b + 1}" for b in range(layout.B)]  # type: ignore[arg-type]
        coords["brand"] = brands
        coords["free_brand"] = brands[1:]

    with pm.Model(coords=coords) as model:
        beta = pm.Normal("beta", mu=0, sigma=beta_sigma, dims="covariate")

        gamma = None
        if brand_intercepts:
            gamma_raw = pm.Normal("gamma_raw", mu=0, sigma=gamma_sigma, dims="free_brand")
            gamma = pm.Deterministic("gamma", sum_to_zero_tensor(gamma_raw), dims="brand")

        pm.Potential("choice_loglik", choice_loglik_tensor(layout, beta, gamma))

    return model


def sample(
    layout: ChoiceLayout,
    brand_intercepts: bool = False,
    draws: int = 1000,
    tune: int = 1000,
    chains: int = 4,
    random_seed: int | None = None,
    beta_sigma: float = 1.0,
    gamma_sigma: float = 1.0,
    **sample_kwargs: Any,
) -> az.InferenceData:
    """
    Build the model and draw from its posterior with ``pm.sample``.

    Extra keyword arguments are forwarded to ``pm.sample``.
    """
    model = build_model(
        layout,
        brand_intercepts=brand_intercepts,
        beta_sigma=beta_sigma,
        gamma_sigma=gamma_sigma,
    )
    logger.debug(
        "sampling %s (brand_intercepts=%s) draws=%d tune=%d chains=%d",
        layout,
        brand_intercepts,
        draws,
        tune,
        chains,
    )
    with model:
        idata = pm.sample(
            draws=draws,
            tune=tune,
            chains=chains,
            random_seed=random_seed,
            **sample_kwargs,
        )
    return idata


def recovery_table(
    idata: Any,
    truth: Mapping[str, npt.ArrayLike],
    interval: float = 0.94,
) -> pd.DataFrame:
    """
    Compare posterior draws with the parameters used to simulate the data.

    Args:
        idata: Sampler output exposing ``posterior[name]`` with leading
            (chain, draw) dimensions.
        truth: True value of each parameter, keyed by variable name.
        interval: Mass of the highest density interval.

    Returns:
        pd.DataFrame: One row per scalar parameter with columns ``true``,
        ``mean``, ``lower``, ``upper`` and ``covered``.
    """
    if not 0 < interval < 1:
        raise ValueError(f"interval must be in (0, 1), got {interval}")

    records = []
    for name, true_value in truth.items():
        true_arr = np.atleast_1d(np.asarray(true_value, dtype=np.float64))
        values = np.asarray(idata.posterior[name], dtype=np.float64)
        samples = values.reshape(-1, *values.shape[2:])
        samples = samples.reshape(samples.shape[0], -1)
        if samples.shape[1] != true_arr.size:
            raise DimensionMismatch(
                f"{name}: posterior has {samples.shape[1]} entries, truth has {true_arr.size}"
            )

        mean = samples.mean(axis=0)
        bounds = np.array(
            [az.hdi(samples[:, k], hdi_prob=interval) for k in range(samples.shape[1])]
        )
        lower, upper = bounds[:, 0], bounds[:, 1]
        for k, true_k in enumerate(true_arr.ravel()):
            records.append(
                {
                    "parameter": f"{name}[{k}]",
                    "true": true_k,
                    "mean": mean[k],
                    "lower": lower[k],
                    "upper": upper[k],
                    "covered": bool(lower[k] <= true_k <= upper[k]),
                }
            )

    return pd.DataFrame.from_records(records).set_index("parameter")
