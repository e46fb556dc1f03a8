"""
Linear algebra primitives shared by the estimator and the smoother.
"""

import numpy as np
from scipy import linalg, sparse
from typing import Optional
import logging

from ..utils.validation import SingularDesignError

logger = logging.getLogger(__name__)


def crossprod(a: np.ndarray, b: Optional[np.ndarray] = None) -> np.ndarray:
    """Return ``a' b``, or ``a' a`` when ``b`` is omitted."""
    a = np.asarray(a, dtype=float)
    return a.T @ (a if b is None else np.asarray(b, dtype=float))


def difference(x: np.ndarray) -> np.ndarray:
    """First differences along the time axis (rows)."""
    return np.diff(np.asarray(x, dtype=float), axis=0)


def difference_operator(n: int) -> sparse.csr_matrix:
    """The ``(n-1) x n`` first-difference operator ``D`` with ``(D x)_t = x_{t+1} - x_t``."""
    if n < 1:
        raise ValueError("The difference operator needs at least one period")
    return sparse.diags([-np.ones(n - 1), np.ones(n - 1)], [0, 1], shape=(n - 1, n), format="csr")


def least_squares(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Ordinary least squares coefficients of ``y`` on the columns of ``X``.

    Raises:
        SingularDesignError: If ``X`` does not have full column rank
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    # same rank cutoff as numpy.linalg.matrix_rank
    cutoff = max(X.shape) * np.finfo(float).eps
    coefficients, _, rank, singular_values = linalg.lstsq(X, y, cond=cutoff)
    if rank < X.shape[1]:
        raise SingularDesignError(
            f"Design matrix of shape {X.shape} has rank {rank}, "
            f"smallest singular value {singular_values.min() if len(singular_values) else 0:.3g}"
        )
    logger.debug("Least squares on %d observations and %d regressors", X.shape[0], X.shape[1])
    return coefficients


def solve_symmetric(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Solve ``a x = b`` for a symmetric positive definite ``a``.

    Raises:
        SingularDesignError: If ``a`` is singular or not positive definite
    """
    try:
        return linalg.solve(a, b, assume_a="pos")
    except (linalg.LinAlgError, ValueError) as e:
        raise SingularDesignError(f"Cannot solve the normal equations: {e}") from e


def inverse_symmetric(a: np.ndarray) -> np.ndarray:
    """Inverse of a symmetric positive definite matrix."""
    return solve_symmetric(a, np.eye(a.shape[0]))


def autocorrelation(x: np.ndarray) -> float:
    """
    Lag-1 autocorrelation of the centred series ``sum(e_t e_{t-1}) / sum(e_t^2)``.

    Returns 0 for a series of constant values.
    """
    x = np.asarray(x, dtype=float)
    centred = x - x.mean()
    denominator = centred @ centred
    if len(x) < 2 or denominator == 0:
        return 0.0
    return float(centred[1:] @ centred[:-1] / denominator)


def prais_winsten_transform(x: np.ndarray, rho: float) -> np.ndarray:
    """
    Whiten an AR(1) process.

    The first row is scaled by ``sqrt(1 - rho^2)``, every later row ``t``
    becomes ``x_t - rho x_{t-1}``. With ``rho == 0`` the input is returned
    unchanged (as a copy).
    """
    x = np.array(x, dtype=float)
    if rho == 0:
        return x
    transformed = np.empty_like(x)
    transformed[0] = np.sqrt(1.0 - rho ** 2) * x[0]
    transformed[1:] = x[1:] - rho * x[:-1]
    return transformed


def ar1_precision(n: int, rho: float) -> sparse.csr_matrix:
    """
    Tridiagonal inverse correlation of an AR(1) process, up to ``1 - rho^2``.

    The diagonal is 1 at both ends and ``1 + rho^2`` inside, the first
    off-diagonals are ``-rho``. It equals ``P' P`` where ``P`` is the
    Prais-Winsten transform.
    """
    diagonal = np.full(n, 1.0 + rho ** 2)
    diagonal[0] = 1.0
    diagonal[-1] = 1.0
    off_diagonal = np.full(n - 1, -rho)
    return sparse.diags([off_diagonal, diagonal, off_diagonal], [-1, 0, 1], shape=(n, n), format="csr")


def gls_quadratic_form(X: np.ndarray, rho: float) -> np.ndarray:
    """Return ``X' Omega^-1 X`` for the AR(1) precision of parameter ``rho``."""
    X = np.asarray(X, dtype=float)
    return crossprod(X, ar1_precision(X.shape[0], rho) @ X)


def solve_banded(lower: int, upper: int, banded: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """
    Solve a banded linear system stored in LAPACK band format.

    ``banded[upper + i - j, j]`` holds the entry ``(i, j)`` of the matrix.

    Raises:
        SingularDesignError: If the system is singular
    """
    try:
        return linalg.solve_banded((lower, upper), banded, rhs, check_finite=True)
    except (linalg.LinAlgError, ValueError) as e:
        raise SingularDesignError(f"Banded system is singular: {e}") from e
