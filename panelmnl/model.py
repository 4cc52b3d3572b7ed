"""
Brand Logit Estimator

Point estimation (maximum likelihood or MAP under Normal priors) of the
multinomial logit over ragged choice sets, with optional sum-to-zero brand
intercepts.
"""

from __future__ import annotations

import logging
import typing
import warnings
from typing import Any, Optional, Sequence

import numpy as np
import numpy.typing as npt
from scipy.optimize import OptimizeResult, minimize

from .errors import DimensionMismatch, InvalidLayout
from .layout import ChoiceLayout
from .likelihood import (
    choice_probabilities,
    loglik_contributions,
    loglik_gradient,
    sum_to_zero,
)

logger = logging.getLogger(__name__)

# Step size for Hessian finite differences
HESSIAN_EPSILON = 1e-5


class BrandLogit:
    """
    Multinomial logit over per-period choice sets.

    Parameters are packed as a flat vector ``[beta (K,), gamma_raw (B-1,)]``;
    the brand block is present only when ``brand_intercepts`` is True.

    Attributes:
        layout (ChoiceLayout): The data the model is evaluated on.
        brand_intercepts (bool): Whether utilities include brand effects.
        prior_sigma (float | None): Scale of independent Normal(0, sigma)
            priors on every free parameter, or None for plain MLE.
        coef_ (np.ndarray): Fitted beta (K,). Available after fit().
        gamma_raw_ (np.ndarray): Fitted free brand effects (B-1,).
        gamma_ (np.ndarray): Fitted sum-to-zero brand effects (B,).
        optimization_result_ (OptimizeResult): Full optimization result.
    """

    def __init__(
        self,
        layout: ChoiceLayout,
        brand_intercepts: bool = False,
        prior_sigma: float | None = None,
    ) -> None:
        """
        Args:
            layout: Validated choice layout.
            brand_intercepts: Add sum-to-zero brand intercepts to utilities.
            prior_sigma: Optional prior scale turning the fit into a MAP estimate.

        Raises:
            InvalidLayout: If brand intercepts are requested without brands.
            ValueError: If prior_sigma is not positive.
        """
        if brand_intercepts and not layout.has_brands:
            raise InvalidLayout(
                "brand_intercepts=True requires a layout with a brand assignment b"
            )
        if prior_sigma is not None and prior_sigma <= 0:
            raise ValueError(f"prior_sigma must be > 0, got {prior_sigma}")

        self.layout = layout
        self.brand_intercepts = brand_intercepts
        self.prior_sigma = prior_sigma

        self.K = layout.K
        self.n_brand_params = layout.B - 1 if brand_intercepts else 0  # type: ignore[operator]

        # Fitted attributes (set by fit method)
        self.coef_: npt.NDArray[np.float64] | None = None
        self.gamma_raw_: npt.NDArray[np.float64] | None = None
        self.gamma_: npt.NDArray[np.float64] | None = None
        self.optimization_result_: OptimizeResult | None = None

    @property
    def n_params(self) -> int:
        return self.K + self.n_brand_params

    def transform_params(
        self, flat_params: npt.NDArray[np.float64]
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64] | None]:
        """
        Split a flat parameter vector into beta and gamma_raw.

        Args:
            flat_params: 1D array of size K (+ B-1 with brand intercepts).

        Returns:
            tuple: (beta, gamma_raw), gamma_raw is None without brand intercepts.

        Raises:
            DimensionMismatch: If flat_params has incorrect size.
        """
        flat_params = np.asarray(flat_params, dtype=np.float64).ravel()
        if flat_params.size != self.n_params:
            raise DimensionMismatch(
                f"flat_params must have size {self.n_params}, got {flat_params.size}"
            )
        beta = flat_params[: self.K]
        if not self.brand_intercepts:
            return beta, None
        return beta, flat_params[self.K :]

    def log_likelihood(self, flat_params: npt.NDArray[np.float64]) -> float:
        """Total log-likelihood at ``flat_params``."""
        beta, gamma_raw = self.transform_params(flat_params)
        return float(np.sum(loglik_contributions(beta, self.layout, gamma_raw)))

    def neg_log_posterior(self, flat_params: npt.NDArray[np.float64]) -> float:
        """
        Negative log-likelihood plus the Normal prior penalty, if any.
        Constant terms of the prior density are dropped.
        """
        value = -self.log_likelihood(flat_params)
        if self.prior_sigma is not None:
            value += 0.5 * float(np.sum(np.square(flat_params))) / self.prior_sigma**2
        return value

    def gradient(self, flat_params: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Gradient of neg_log_posterior (n_params,)."""
        beta, gamma_raw = self.transform_params(flat_params)
        grad = -loglik_gradient(beta, self.layout, gamma_raw)
        if self.prior_sigma is not None:
            grad = grad + np.asarray(flat_params, dtype=np.float64) / self.prior_sigma**2
        return grad

    def fit(
        self,
        init_params: Optional[npt.NDArray[np.float64]] = None,
        method: str = "L-BFGS-B",
        options: Optional[dict[str, Any]] = None,
        bounds: Optional[Sequence[tuple[float | None, float | None]]] = None,
        num_restarts: int = 0,
        restart_scale: float = 0.5,
        rng: Optional[np.random.Generator] = None,
    ) -> "BrandLogit":
        """
        Fit the model by minimizing the negative log-posterior.

        Args:
            init_params (np.ndarray, optional): Starting values (n_params,).
                                                Defaults to zeros.
            method (str): scipy.optimize.minimize method. Default is 'L-BFGS-B'.
            options (dict, optional): Optimizer options.
                                      Default is {'gtol': 1e-5, 'maxiter': 1000}.
            bounds (Sequence, optional): Bounds passed to the optimizer.
            num_restarts (int): Number of random restarts beyond init_params.
            restart_scale (float): Scale of normal noise for restart starts.
            rng (np.random.Generator, optional): Random generator for restarts.

        Returns:
            self: Returns the instance itself for method chaining.

        Raises:
            DimensionMismatch: If init_params has the wrong size.
            RuntimeError: If optimization fails to converge.

        Example:
            >>> from panelmnl import BrandLogit, simulate_panel
            >>> layout, beta, gamma_raw = simulate_panel(N=2000, T=50, K=2, B=3)
            >>> model = BrandLogit(layout, brand_intercepts=True).fit()
            >>> print(model.coef_, model.gamma_)
        """
        if options is None:
            options = {"gtol": 1e-5, "maxiter": 1000}

        if init_params is None:
            init_params = np.zeros(self.n_params)
        else:
            init_params = np.asarray(init_params, dtype=np.float64)
            if init_params.size != self.n_params:
                raise DimensionMismatch(
                    f"init_params must have size {self.n_params}, got {init_params.size}"
                )

        rng = rng or np.random.default_rng()

        start_points = [init_params]
        if num_restarts > 0:
            noise = rng.normal(scale=restart_scale, size=(num_restarts, self.n_params))
            start_points.extend(init_params + noise_i for noise_i in noise)

        best_result: OptimizeResult | None = None
        for attempt, start in enumerate(start_points):
            result = minimize(
                fun=self.neg_log_posterior,
                jac=self.gradient,
                x0=start,
                method=method,
                bounds=bounds,
                options=options,
            )
            logger.debug(
                "start %d: success=%s fun=%.6f nit=%s",
                attempt,
                result.success,
                result.fun,
                result.get("nit"),
            )
            if best_result is None or result.fun < best_result.fun:
                best_result = result

        assert best_result is not None

        if not best_result.success:
            raise RuntimeError(
                f"Optimization failed to converge: {best_result.message}\n"
                f"Try a different optimization method or adjust tolerance."
            )

        beta, gamma_raw = self.transform_params(best_result.x)
        self.coef_ = beta.copy()
        if gamma_raw is not None:
            self.gamma_raw_ = gamma_raw.copy()
            self.gamma_ = sum_to_zero(gamma_raw)
        self.optimization_result_ = best_result

        return self

    def _fitted_params(self) -> npt.NDArray[np.float64]:
        if self.optimization_result_ is None:
            raise ValueError("Model is not fitted. Provide flat_params or call fit.")
        return np.asarray(self.optimization_result_.x, dtype=np.float64)

    def compute_standard_errors(
        self,
        flat_params: Optional[npt.NDArray[np.float64]] = None,
        *,
        epsilon: float | None = None,
    ) -> npt.NDArray[np.float64]:
        """
        Standard errors from the inverse Hessian of the negative log-posterior,
        approximated by central finite differences of the analytical gradient.

        Args:
            flat_params: Parameter vector; defaults to the fitted parameters.
            epsilon: Optional finite-difference step; defaults to HESSIAN_EPSILON.

        Returns:
            1D array of standard errors (n_params,). Entries whose variance
            comes out negative are NaN.
        """
        if flat_params is None:
            flat_params = self._fitted_params()
        flat_params = np.asarray(flat_params, dtype=np.float64)
        self.transform_params(flat_params)

        n_params = flat_params.size
        hessian = np.zeros((n_params, n_params))
        step = HESSIAN_EPSILON if epsilon is None else float(epsilon)

        for j in range(n_params):
            params_plus = flat_params.copy()
            params_plus[j] += step

            params_minus = flat_params.copy()
            params_minus[j] -= step

            hessian[:, j] = (
                self.gradient(params_plus) - self.gradient(params_minus)
            ) / (2 * step)

        # pinv tolerates near-singular Hessians (collinear covariates)
        cov_matrix = np.linalg.pinv(hessian)
        diag_cov = np.diag(cov_matrix)

        if np.any(diag_cov < 0):
            warnings.warn(
                "Hessian inverse has negative diagonal elements. Standard errors may be unreliable.",
                RuntimeWarning,
                stacklevel=2,
            )

        std_errs = np.sqrt(np.where(diag_cov >= 0, diag_cov, np.nan))
        return typing.cast(npt.NDArray[np.float64], std_errs)

    def predict_proba(
        self, flat_params: Optional[npt.NDArray[np.float64]] = None
    ) -> npt.NDArray[np.float64]:
        """
        Choice probability of every alternative row within its period (M,).

        Raises:
            ValueError: If the model is unfitted and no parameters are provided.
        """
        if flat_params is None:
            flat_params = self._fitted_params()
        beta, gamma_raw = self.transform_params(flat_params)
        return choice_probabilities(beta, self.layout, gamma_raw)
