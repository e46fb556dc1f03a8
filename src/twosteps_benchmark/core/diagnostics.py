"""
Summary statistics of a fitted regression.

Only numbers are produced here; formatting them is left to the caller.
"""

from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox

from .accessors import FittableModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RegressionSummary:
    """
    Statistics describing a regression.

    Attributes:
        coefficients: Table indexed by coefficient name with columns
            ``estimate``, ``std_error``, ``t_value`` and ``p_value``
        r_squared: Share of the decorrelated variation explained by the fit
        adj_r_squared: R squared adjusted for the residual degrees of freedom
        sigma: Residual standard error
        df_residual: Residual degrees of freedom
        rho: Autocorrelation of the residuals
        include_differentiation: Whether the regression was run on differences
        portmanteau: Ljung-Box statistic and p value at lag 1, for the
            residuals (``u``) and, when rho is estimated, the decorrelated
            residuals (``epsilon``)
    """
    coefficients: pd.DataFrame
    r_squared: float
    adj_r_squared: float
    sigma: float
    df_residual: int
    rho: float
    include_differentiation: bool
    portmanteau: pd.DataFrame


def ljung_box(values: np.ndarray, lag: int = 1) -> tuple:
    """
    Ljung-Box portmanteau statistic.

    Args:
        values: Series of residuals
        lag: Number of autocorrelation lags tested

    Returns:
        Tuple of the statistic and its chi-squared p value with ``lag`` degrees of freedom
    """
    x = np.asarray(values, dtype=float)
    n = len(x)
    if lag < 1 or lag >= n:
        raise ValueError(f"lag must lie between 1 and {n - 1}, got {lag}")
    result = acorr_ljungbox(x, lags=[lag], return_df=True)
    return float(result["lb_stat"].iloc[0]), float(result["lb_pvalue"].iloc[0])


def summarize(model: FittableModel) -> RegressionSummary:
    """
    Compute the summary statistics of a regression or of a benchmark's regression.

    Args:
        model: Fitted regression or two-steps benchmark

    Returns:
        The regression summary
    """
    df_residual = model.df_residual
    names = list(model.coefficients)
    estimates = np.array([model.coefficients[name] for name in names])
    errors = np.array([model.standard_errors[name] for name in names])
    with np.errstate(divide="ignore", invalid="ignore"):
        t_values = estimates / errors
    p_values = 2 * stats.t.sf(np.abs(t_values), df_residual)
    table = pd.DataFrame(
        {"estimate": estimates, "std_error": errors, "t_value": t_values, "p_value": p_values},
        index=pd.Index(names, name="coefficient")
    )

    fitted = model.fitted_values_decorrelated.values
    residuals_decorrelated = model.residuals_decorrelated.values
    mss = float(fitted @ fitted)
    rss = float(residuals_decorrelated @ residuals_decorrelated)
    r_squared = mss / (mss + rss)
    n = len(fitted)
    adj_r_squared = 1 - (1 - r_squared) * n / df_residual

    residuals = model.residuals.values
    sigma = float(np.sqrt(residuals @ residuals / df_residual))

    rows = {"u": ljung_box(residuals)}
    if model.rho != 0:
        rows["epsilon"] = ljung_box(residuals_decorrelated)
    portmanteau = pd.DataFrame.from_dict(rows, orient="index", columns=["statistic", "p_value"])

    logger.debug("R squared %.4f, sigma %.4g on %d degrees of freedom", r_squared, sigma, df_residual)
    return RegressionSummary(
        coefficients=table,
        r_squared=r_squared,
        adj_r_squared=adj_r_squared,
        sigma=sigma,
        df_residual=df_residual,
        rho=model.rho,
        include_differentiation=model.model_specification.include_differentiation,
        portmanteau=portmanteau,
    )
