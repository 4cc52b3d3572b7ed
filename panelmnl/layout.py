"""
Ragged Choice-Set Layout

Flat storage for panel choice data where the set of alternatives changes from
period to period. All covariate rows live in a single (M, K) arena; each period
owns a contiguous slice of it described by a start offset and a size.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt

from .errors import IndexOutOfRange, InvalidLayout

IndexInput = Sequence[int] | npt.NDArray[np.integer]


def _to_numpy(values: Any) -> Any:
    # pandas Series/DataFrame expose to_numpy
    if hasattr(values, "to_numpy"):
        return values.to_numpy()
    return values


def _as_index_array(values: Any, name: str) -> npt.NDArray[np.int64]:
    """Convert a one-dimensional sequence of integer labels to an int64 array."""
    arr = np.asarray(_to_numpy(values))
    if arr.ndim != 1:
        raise InvalidLayout(f"{name} must be one-dimensional, got shape {arr.shape}")
    if np.issubdtype(arr.dtype, np.complexfloating):
        raise InvalidLayout(f"{name} must contain integers")
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        if not np.issubdtype(arr.dtype, np.number) or not np.all(np.mod(arr, 1) == 0):
            raise InvalidLayout(f"{name} must contain integers")
    return arr.astype(np.int64)


def _format_offenders(positions: np.ndarray) -> str:
    # Report 1-based positions, truncated like the other validation messages
    shown = (positions[:10] + 1).tolist()
    return f"{shown}" + ("..." if len(positions) > 10 else "")


class ChoiceLayout:
    """
    Validated, immutable panel of ragged choice sets.

    Indices passed in (``xstart``, ``t``, ``Y``, ``b``) are 1-based. They are
    converted once to 0-based arrays that the likelihood code indexes with.

    Attributes:
        X (np.ndarray): Read-only covariate arena of shape (M, K).
        N, M, K, T (int): Observations, alternative rows, covariates, periods.
        B (int | None): Number of brands, or None without brand assignment.
        sizes (np.ndarray): Choice-set size per period (T,).
        starts (np.ndarray): 0-based first arena row of each period (T,).
        obs_period (np.ndarray): 0-based period of each observation (N,).
        obs_choice (np.ndarray): 0-based local chosen index (N,).
        chosen_row (np.ndarray): Arena row of each observed choice (N,).
        row_period (np.ndarray): 0-based period owning each arena row (M,).
        brand (np.ndarray | None): 0-based brand of each arena row (M,).
        obs_per_period (np.ndarray): Number of observations per period (T,).
    """

    def __init__(
        self,
        X: npt.ArrayLike,
        J: IndexInput,
        xstart: IndexInput,
        t: IndexInput,
        Y: IndexInput,
        b: IndexInput | None = None,
        B: int | None = None,
    ) -> None:
        """
        Validate the layout and build the 0-based index arrays.

        Args:
            X: Covariate matrix (M, K), one row per alternative.
            J: Choice-set size of each period (T,), each >= 2.
            xstart: 1-based first row of each period in X (T,).
            t: 1-based period of each observation (N,).
            Y: 1-based chosen alternative within its period's choice set (N,).
            b: Optional 1-based brand of each row of X (M,).
            B: Number of brands. Defaults to max(b) when b is given.

        Raises:
            InvalidLayout: If sizes disagree or the period slices do not tile X.
            IndexOutOfRange: If a period, offset, choice or brand is out of range.
        """
        arena = np.array(_to_numpy(X), dtype=np.float64)
        if arena.ndim != 2:
            raise InvalidLayout(f"X must be two-dimensional, got shape {arena.shape}")

        sizes = _as_index_array(J, "J")
        starts = _as_index_array(xstart, "xstart")
        obs_period = _as_index_array(t, "t")
        choices = _as_index_array(Y, "Y")

        M, K = arena.shape
        T = sizes.size
        N = obs_period.size

        if T < 1:
            raise InvalidLayout("at least one period is required, got T=0")
        if N < 1:
            raise InvalidLayout("at least one observation is required, got N=0")
        if K < 1:
            raise InvalidLayout("X must have at least one covariate column")
        if starts.size != T:
            raise InvalidLayout(f"xstart must have length T={T}, got {starts.size}")
        if choices.size != N:
            raise InvalidLayout(f"Y must have length N={N}, got {choices.size}")

        if np.any(sizes < 2):
            bad = np.flatnonzero(sizes < 2)
            raise InvalidLayout(
                f"choice-set sizes J must be >= 2. Periods with invalid size: "
                f"{_format_offenders(bad)}"
            )
        if sizes.sum() != M:
            raise InvalidLayout(
                f"sum(J) must equal the number of rows of X: sum(J)={sizes.sum()}, M={M}"
            )

        ends = starts + sizes - 1
        if np.any(starts < 1) or np.any(ends > M):
            bad = np.flatnonzero((starts < 1) | (ends > M))
            raise IndexOutOfRange(
                f"xstart must satisfy 1 <= xstart[t] and xstart[t] + J[t] - 1 <= M={M}. "
                f"Periods out of range: {_format_offenders(bad)}"
            )

        # Arena row of every (period, slot) pair, periods in declaration order
        period_of_slot = np.repeat(np.arange(T), sizes)
        offset_in_period = np.arange(M) - np.repeat(np.cumsum(sizes) - sizes, sizes)
        rows = starts[period_of_slot] - 1 + offset_in_period

        coverage = np.bincount(rows, minlength=M)
        if not np.all(coverage == 1):
            bad = np.flatnonzero(coverage != 1)
            raise InvalidLayout(
                f"period slices must cover every row of X exactly once. "
                f"Overlapping or uncovered rows: {_format_offenders(bad)}"
            )

        row_period = np.empty(M, dtype=np.int64)
        row_period[rows] = period_of_slot

        if np.any((obs_period < 1) | (obs_period > T)):
            bad = np.flatnonzero((obs_period < 1) | (obs_period > T))
            raise IndexOutOfRange(
                f"t must lie in [1, {T}]. Observations out of range: "
                f"{_format_offenders(bad)}"
            )
        obs_period = obs_period - 1

        limits = sizes[obs_period]
        if np.any((choices < 1) | (choices > limits)):
            bad = np.flatnonzero((choices < 1) | (choices > limits))
            raise IndexOutOfRange(
                f"Y[i] must lie in [1, J[t[i]]]. Observations out of range: "
                f"{_format_offenders(bad)}"
            )
        obs_choice = choices - 1

        brand: npt.NDArray[np.int64] | None = None
        if b is None:
            if B is not None:
                raise InvalidLayout("B was given without a brand assignment b")
        else:
            brand = _as_index_array(b, "b")
            if brand.size != M:
                raise InvalidLayout(f"b must have length M={M}, got {brand.size}")
            if B is None:
                B = int(brand.max())
            if B < 1:
                raise InvalidLayout(f"B must be >= 1, got {B}")
            if np.any((brand < 1) | (brand > B)):
                bad = np.flatnonzero((brand < 1) | (brand > B))
                raise IndexOutOfRange(
                    f"b must lie in [1, {B}]. Rows out of range: {_format_offenders(bad)}"
                )
            brand = brand - 1

        self.N = N
        self.M = M
        self.K = K
        self.T = T
        self.B = None if brand is None else int(B)  # type: ignore[arg-type]

        self.X = arena
        self.sizes = sizes
        self.starts = starts - 1
        self.obs_period = obs_period
        self.obs_choice = obs_choice
        self.chosen_row = self.starts[obs_period] + obs_choice
        self.row_period = row_period
        self.brand = brand
        self.obs_per_period = np.bincount(obs_period, minlength=T)

        width = int(sizes.max())
        slots = np.arange(width)
        self._pad_mask = slots[np.newaxis, :] < sizes[:, np.newaxis]
        self._pad_index = np.where(
            self._pad_mask, self.starts[:, np.newaxis] + slots[np.newaxis, :], 0
        )

        for arr in (
            self.X,
            self.sizes,
            self.starts,
            self.obs_period,
            self.obs_choice,
            self.chosen_row,
            self.row_period,
            self.obs_per_period,
            self._pad_mask,
            self._pad_index,
        ):
            arr.setflags(write=False)
        if self.brand is not None:
            self.brand.setflags(write=False)

    @classmethod
    def from_blocks(
        cls,
        blocks: Sequence[npt.ArrayLike],
        t: IndexInput,
        Y: IndexInput,
        brands: Sequence[IndexInput] | None = None,
        B: int | None = None,
    ) -> "ChoiceLayout":
        """
        Build a layout from one covariate block per period.

        Periods are laid out contiguously in the order given, so period ``k``
        (1-based) is ``blocks[k - 1]``.

        Args:
            blocks: Per-period covariate matrices of shape (J[t], K). A 1D block
                is read as a single covariate column.
            t: 1-based period of each observation.
            Y: 1-based chosen alternative within the period.
            brands: Optional per-period 1-based brand labels, aligned with blocks.
            B: Number of brands (defaults to the largest label).

        Returns:
            ChoiceLayout: The validated layout.
        """
        if len(blocks) == 0:
            raise InvalidLayout("at least one period block is required")

        arrays = []
        for block in blocks:
            arr = np.asarray(_to_numpy(block), dtype=np.float64)
            if arr.ndim == 1:
                arr = arr.reshape(-1, 1)
            arrays.append(arr)

        widths = {arr.shape[1] for arr in arrays}
        if len(widths) != 1:
            raise InvalidLayout(
                f"all period blocks must have the same number of columns, got {sorted(widths)}"
            )

        J = np.array([arr.shape[0] for arr in arrays], dtype=np.int64)
        xstart = 1 + np.cumsum(J) - J

        b = None
        if brands is not None:
            if len(brands) != len(blocks):
                raise InvalidLayout(
                    f"brands must have one entry per period ({len(blocks)}), got {len(brands)}"
                )
            b = np.concatenate(
                [np.asarray(_to_numpy(labels)).ravel() for labels in brands]
            )

        return cls(np.vstack(arrays), J, xstart, t, Y, b=b, B=B)

    @property
    def has_brands(self) -> bool:
        return self.brand is not None

    @property
    def J(self) -> npt.NDArray[np.int64]:
        """Choice-set size per period."""
        return self.sizes

    @property
    def xstart(self) -> npt.NDArray[np.int64]:
        """1-based start row of each period."""
        return self.starts + 1

    def period_block(self, t: int) -> npt.NDArray[np.float64]:
        """
        Return the covariate rows of period ``t`` (1-based) as a read-only view.
        """
        if not 1 <= t <= self.T:
            raise IndexOutOfRange(f"period must lie in [1, {self.T}], got {t}")
        s = self.starts[t - 1]
        return self.X[s : s + self.sizes[t - 1]]

    def padded_index(self) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.bool_]]:
        """
        Map a padded (T, max(J)) grid of period slots onto arena rows.

        Returns:
            tuple:
                - index (np.ndarray): Arena row per slot (T, max(J)); padding
                  slots point at row 0 and must be ignored via the mask.
                - mask (np.ndarray): True where the slot holds a real alternative.
        """
        return self._pad_index, self._pad_mask

    def describe(self) -> dict[str, int | None]:
        """Summary of the layout dimensions."""
        return {
            "N": self.N,
            "M": self.M,
            "K": self.K,
            "T": self.T,
            "B": self.B,
            "min_J": int(self.sizes.min()),
            "max_J": int(self.sizes.max()),
        }

    def __repr__(self) -> str:
        dims = ", ".join(f"{k}={v}" for k, v in self.describe().items() if v is not None)
        return f"{type(self).__name__}({dims})"
