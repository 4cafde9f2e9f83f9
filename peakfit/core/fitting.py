"""
Optimizer boundary: fit an EvaluableFunction to (x, y) data with lmfit.

The engine only supplies the objective ``(f(x, p) - y) / sigma``; the
minimization itself is lmfit's. Fitted values, errors and the covariance
matrix are written back into the function so that downstream renderers
read a consistent state.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

import numpy as np
import lmfit

from peakfit.core.config import FitConfig
from peakfit.core.function import EvaluableFunction

log = logging.getLogger(__name__)


# ============================================================================
# PARAMETER CONVERSION
# ============================================================================

def param_key(prefix: str, name: str) -> str:
    """lmfit-safe parameter name (identifiers only)."""
    key = re.sub(r'\W', '_', f"{prefix}{name}")
    return key if not key[0].isdigit() else f"_{key}"


def function_to_lmfit_params(func: EvaluableFunction, prefix: str = '',
                             use_limits: bool = True,
                             params: Optional[lmfit.Parameters] = None) -> Tuple[lmfit.Parameters, List[str]]:
    """
    Build lmfit Parameters from a function's names, values, fixed flags and limits.

    Args:
        func: Function to convert
        prefix: Prepended to every parameter name (for joint fits)
        use_limits: If False, all bounds are dropped
        params: Existing Parameters to extend (a new set if None)

    Returns:
        (params, keys) where keys[i] is the lmfit name of func parameter i
    """
    if params is None:
        params = lmfit.Parameters()
    keys = []
    for i, name in enumerate(func.param_names):
        key = param_key(prefix, name)
        if key in params:
            raise ValueError(f"Duplicate fit parameter '{key}'")
        lo, hi = func.limits[i] if use_limits else (None, None)
        params.add(key, value=float(func.parameters[i]), vary=not bool(func.fixed[i]),
                   min=-np.inf if lo is None else lo,
                   max=np.inf if hi is None else hi)
        keys.append(key)
    return params, keys


def values_from_params(params: lmfit.Parameters, keys: Sequence[str]) -> np.ndarray:
    return np.array([params[k].value for k in keys], dtype=float)


def covariance_from_result(result: lmfit.minimizer.MinimizerResult,
                           keys: Sequence[str]) -> Optional[np.ndarray]:
    """Expand lmfit's covariance (varying parameters only) to all ``keys``."""
    if getattr(result, 'covar', None) is None:
        return None
    index = {name: i for i, name in enumerate(result.var_names)}
    cov = np.zeros((len(keys), len(keys)))
    for a, ka in enumerate(keys):
        if ka not in index:
            continue
        for b, kb in enumerate(keys):
            if kb in index:
                cov[a, b] = result.covar[index[ka], index[kb]]
    return cov


def store_result(func: EvaluableFunction, result: lmfit.minimizer.MinimizerResult,
                 keys: Sequence[str]) -> None:
    """Write fitted values, errors and covariance back into ``func``."""
    func.set_parameters(values_from_params(result.params, keys))
    func.set_par_errors([result.params[k].stderr or 0.0 for k in keys])
    func.covariance = covariance_from_result(result, keys)


# ============================================================================
# FITTING
# ============================================================================

def poisson_sigma(y: np.ndarray) -> np.ndarray:
    """Counting uncertainty sqrt(N), clipped at 1 to keep empty bins finite."""
    return np.sqrt(np.clip(np.asarray(y, dtype=float), 1, np.inf))


def window_mask(x: np.ndarray, x_range: Tuple[float, float]) -> np.ndarray:
    mask = (x >= x_range[0]) & (x <= x_range[1])
    if not mask.any():
        raise ValueError(f"No data in window [{x_range[0]:.3f}, {x_range[1]:.3f}]")
    return mask


def select_window(x: np.ndarray, y: np.ndarray,
                  x_range: Optional[Tuple[float, float]] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Restrict (x, y) to x_range (inclusive). Returns the inputs unchanged if None."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x_range is None:
        return x, y
    mask = window_mask(x, x_range)
    return x[mask], y[mask]


def fit_weights(y: np.ndarray, yerr, config: FitConfig) -> np.ndarray:
    if yerr is not None:
        return np.broadcast_to(np.asarray(yerr, dtype=float), y.shape)
    if config.poisson_weights:
        return poisson_sigma(y)
    return np.ones_like(y)


def minimize_vector(model, keys: Sequence[str], params: lmfit.Parameters,
                    x: np.ndarray, y: np.ndarray, sigma: np.ndarray,
                    config: FitConfig) -> lmfit.minimizer.MinimizerResult:
    """
    Minimize ``(model(x, p) - y) / sigma`` where p is the flat vector ``keys``.

    Raises:
        RuntimeError: If the minimizer aborted
    """
    def residual(pars, x, y, sigma):
        return (model(x, values_from_params(pars, keys)) - y) / sigma

    result = lmfit.minimize(residual, params, args=(x, y, sigma),
                            method=config.method, max_nfev=config.max_nfev)
    if getattr(result, 'aborted', False):
        raise RuntimeError(f"Fit aborted after {result.nfev} evaluations")
    if not result.success:
        log.warning("Fit did not converge: %s", result.message)
    return result


def fit_function(func: EvaluableFunction, x: np.ndarray, y: np.ndarray,
                 yerr: Optional[np.ndarray] = None,
                 config: FitConfig = FitConfig(),
                 x_range: Optional[Tuple[float, float]] = None) -> lmfit.minimizer.MinimizerResult:
    """
    Fit ``func`` to data, updating its parameters in place.

    Args:
        func: Function to fit; its current parameters are the starting point
        x, y: Data (e.g. bin centers and counts)
        yerr: Per-point uncertainties. If None, Poisson weights are used
              (or unit weights when config.poisson_weights is False)
        config: FitConfig
        x_range: Optional (lo, hi) window applied to the data

    Returns:
        lmfit MinimizerResult

    Example:
        >>> line = EvaluableFunction("line", lambda x, p: p[0] + p[1] * x, 0, 10, 2)
        >>> result = fit_function(line, x, counts)
        >>> line.get_parameter(1)  # fitted slope
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x_range is not None:
        mask = window_mask(x, x_range)
        x, y = x[mask], y[mask]
        if yerr is not None:
            yerr = np.broadcast_to(np.asarray(yerr, dtype=float), mask.shape)[mask]
    sigma = fit_weights(y, yerr, config)

    params, keys = function_to_lmfit_params(func, use_limits=config.use_limits)
    result = minimize_vector(func.eval_par, keys, params, x, y, sigma, config)
    store_result(func, result, keys)

    log.debug("%s: chi2_red=%.3f after %d evaluations", func.name, result.redchi, result.nfev)
    return result
