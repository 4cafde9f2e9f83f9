"""
Joint fit of several peaks on one shared global background.

The fitted vector is each peak's parameters in turn, followed by the
global background's::

    [peak_0 (N_0) | peak_1 (N_1) | ... | global (M)]

After the fit the values, errors and covariance blocks are written back to
every peak's total function and to the global background, every peak gets
the global background attached, and cached background functions are
refreshed, so each peak can be drawn on the global background directly.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import lmfit

from peakfit.core.config import FitConfig
from peakfit.core.errors import MisconfiguredComposition
from peakfit.core.fitting import (function_to_lmfit_params, minimize_vector,
                                  covariance_from_result, values_from_params,
                                  fit_weights, window_mask)
from peakfit.core.function import EvaluableFunction
from peakfit.peaks.shapes import LINEAR, Shape
from peakfit.peaks.single_peak import PeakModel

log = logging.getLogger(__name__)


def make_global_background(x_range: Tuple[float, float], shape: Shape = LINEAR,
                           name: str = "global_bg") -> EvaluableFunction:
    """Global background function over ``x_range`` built from a background Shape."""
    def func(x, params):
        return shape.func(x, *params)

    gb = EvaluableFunction(name, func, x_range[0], x_range[1], shape.n_params, shape.param_names)
    for pname, value in shape.defaults.items():
        gb.set_parameter(gb.parameter_index(pname), value)
    for pname, (lo, hi) in shape.limits.items():
        gb.set_parameter_limits(gb.parameter_index(pname), lo, hi)
    gb.line_color = "green"
    return gb


class MultiPeakFit:
    """
    Several PeakModels plus one global background fitted as a single sum.

    Args:
        peaks: Initialized PeakModels (names must be unique)
        global_background: Shared background function
        fix_local_backgrounds: Fix each peak's local background parameters
                               at their current values so the global
                               background carries the continuum
    """

    def __init__(self, peaks: Sequence[PeakModel], global_background: EvaluableFunction,
                 fix_local_backgrounds: bool = True):
        if not peaks:
            raise ValueError("No peaks defined - cannot build model")
        names = [p.name for p in peaks]
        if len(set(names)) != len(names):
            raise ValueError(f"Peak names must be unique, got {names}")

        self.peaks: List[PeakModel] = list(peaks)
        self.global_background = global_background
        self.result: Optional[lmfit.minimizer.MinimizerResult] = None

        for peak in self.peaks:
            peak.get_total_function()
            if fix_local_backgrounds:
                peak.fix_background_parameters()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def blocks(self) -> List[Tuple[int, int]]:
        """(start, stop) of each peak's slice in the joint vector; the global block is last."""
        out = []
        start = 0
        for peak in self.peaks:
            out.append((start, start + peak.get_n_parameters()))
            start += peak.get_n_parameters()
        out.append((start, start + self.global_background.npar))
        return out

    @property
    def n_parameters(self) -> int:
        return self.blocks()[-1][1]

    def joint_parameters(self) -> np.ndarray:
        return np.concatenate([p.total_function.get_parameters() for p in self.peaks]
                              + [self.global_background.get_parameters()])

    def evaluate(self, x, params: Optional[Sequence[float]] = None):
        """Sum of all peaks' total functions plus the global background."""
        if params is None:
            params = self.joint_parameters()
        params = np.asarray(params, dtype=float)
        if params.size != self.n_parameters:
            raise MisconfiguredComposition(
                f"Joint model needs {self.n_parameters} parameters, got {params.size}")
        blocks = self.blocks()
        lo, hi = blocks[-1]
        value = self.global_background.eval_par(x, params[lo:hi])
        for peak, (start, stop) in zip(self.peaks, blocks):
            value = value + peak.total_function_value(x, params[start:stop])
        return value

    __call__ = evaluate

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def _build_params(self, use_limits: bool) -> Tuple[lmfit.Parameters, List[str]]:
        params = lmfit.Parameters()
        keys: List[str] = []
        for peak in self.peaks:
            _, k = function_to_lmfit_params(peak.total_function, prefix=f"{peak.name}_",
                                            use_limits=use_limits, params=params)
            keys.extend(k)
        _, k = function_to_lmfit_params(self.global_background, prefix="global_",
                                        use_limits=use_limits, params=params)
        keys.extend(k)
        return params, keys

    def fit(self, x: np.ndarray, y: np.ndarray, yerr: Optional[np.ndarray] = None,
            config: FitConfig = FitConfig(),
            x_range: Optional[Tuple[float, float]] = None) -> lmfit.minimizer.MinimizerResult:
        """
        Fit all peaks and the global background together.

        Args:
            x, y: Bin centers and counts
            yerr: Per-point uncertainties (Poisson if None)
            config: FitConfig
            x_range: Optional window; also becomes the global background's range

        Returns:
            lmfit MinimizerResult
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if x_range is not None:
            mask = window_mask(x, x_range)
            x, y = x[mask], y[mask]
            if yerr is not None:
                yerr = np.broadcast_to(np.asarray(yerr, dtype=float), mask.shape)[mask]
            self.global_background.set_range(*x_range)

        sigma = fit_weights(y, yerr, config)

        params, keys = self._build_params(config.use_limits)
        result = minimize_vector(self.evaluate, keys, params, x, y, sigma, config)
        self._distribute(result, keys)
        self.result = result
        log.debug("Joint fit of %d peaks: chi2_red=%.3f after %d evaluations",
                  len(self.peaks), result.redchi, result.nfev)

        _print_fit_summary(self, result)
        return result

    def _distribute(self, result: lmfit.minimizer.MinimizerResult, keys: Sequence[str]) -> None:
        values = values_from_params(result.params, keys)
        errors = np.array([result.params[k].stderr or 0.0 for k in keys])
        cov = covariance_from_result(result, keys)

        funcs = [p.total_function for p in self.peaks] + [self.global_background]
        for func, (start, stop) in zip(funcs, self.blocks()):
            func.set_parameters(values[start:stop])
            func.set_par_errors(errors[start:stop])
            func.covariance = None if cov is None else cov[start:stop, start:stop].copy()

        for peak in self.peaks:
            peak.set_global_background(self.global_background)
            if peak.has_background_function:
                peak.update_background_parameters()


def _print_fit_summary(fit: MultiPeakFit, result: lmfit.minimizer.MinimizerResult) -> None:
    print("\n  Joint peak fit:")
    print(f"    Peaks: {len(fit.peaks)}")
    print(f"    Free parameters: {result.nvarys}")
    print(f"    χ²_reduced: {result.redchi:.3f}")
    for peak in fit.peaks:
        if peak.peak_shape.centroid_param is not None:
            print(f"    {peak.name}: centroid={peak.centroid():.4f} ± {peak.centroid_err():.4f}, "
                  f"area={peak.area():.1f} ± {peak.area_err():.1f}")
