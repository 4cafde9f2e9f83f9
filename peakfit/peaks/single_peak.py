"""
Single-peak model: a peak shape on a local background, fitted as one function.

A ``PeakModel`` owns
- the parameter layout and the table saying which parameters belong to the
  background (everything else belongs to the peak),
- the total function ``peak(x, p) + background(x, p)`` that the optimizer fits,
- a lazily built background function, evaluated with the same flat vector,
- an optional, non-owned global background shared with other peaks.

Both sub-functions receive the full parameter vector and read only the
entries they need, so the total always decomposes exactly into its parts::

    peak = PeakModel(GAUSS, LINEAR, x_range=(100, 140))
    peak.total_function.set_parameters([50, 120, 2, 10, 0.1])
    peak.total_function_value(118, p) == peak.peak_function(118, p) + peak.background_function(118, p)

Layout: peak-shape parameters in declared order, then the background-shape
parameters the peak shape does not already define. Background parameters
are exactly those introduced by the background shape.

Single-threaded: build the background function before sharing a model
across worker threads.
"""

import logging
import operator
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import integrate

from peakfit.core.config import BACKGROUND_LINE_STYLE, PLACEHOLDER_RANGE, QUAD_LIMIT, FitConfig
from peakfit.core.errors import IndexOutOfRange, MisconfiguredComposition, NotInitialized
from peakfit.core.fitting import fit_function
from peakfit.core.function import EvaluableFunction
from peakfit.peaks.shapes import NO_BACKGROUND, Shape

log = logging.getLogger(__name__)


class ParameterRole(Enum):
    PEAK = 'peak'
    BACKGROUND = 'background'


class PeakModel:
    """
    Peak shape plus local background over one flat parameter vector.

    Args:
        peak_shape: Peak Shape. If None the model starts uninitialized and
                    ``attach_peak`` must be called before use.
        background_shape: Background Shape (no background if None)
        name: Name of the total function
        x_range: Fit/display range of the total function
        background_table: Optional explicit boolean table (True = background)
                          of length N overriding the layout-derived one
    """

    def __init__(self, peak_shape: Optional[Shape] = None,
                 background_shape: Optional[Shape] = None,
                 name: str = 'peak',
                 x_range: Tuple[float, float] = PLACEHOLDER_RANGE,
                 background_table: Optional[Sequence[bool]] = None):
        self.name = name
        self.peak_shape: Optional[Shape] = None
        self.background_shape: Optional[Shape] = None
        self.total_function: Optional[EvaluableFunction] = None
        self.global_background: Optional[EvaluableFunction] = None
        self._background_function: Optional[EvaluableFunction] = None
        self._bg_table = np.zeros(0, dtype=bool)
        self._peak_idx = np.zeros(0, dtype=int)
        self._bg_idx = np.zeros(0, dtype=int)

        if peak_shape is not None:
            self.attach_peak(peak_shape, background_shape, x_range, background_table)

    def __repr__(self):
        shapes = (f"{self.peak_shape.name} + {self.background_shape.name}"
                  if self.peak_shape is not None else "uninitialized")
        return f"PeakModel({self.name}: {shapes}, npar={self.get_n_parameters()})"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def attach_peak(self, peak_shape: Shape, background_shape: Optional[Shape] = None,
                    x_range: Tuple[float, float] = PLACEHOLDER_RANGE,
                    background_table: Optional[Sequence[bool]] = None) -> EvaluableFunction:
        """Define the peak and background shapes and build the total function."""
        if self.total_function is not None:
            raise MisconfiguredComposition(f"{self.name}: peak shape already attached")
        if background_shape is None:
            background_shape = NO_BACKGROUND

        names = list(peak_shape.param_names)
        names.extend(n for n in background_shape.param_names if n not in names)
        npar = len(names)

        if background_table is None:
            table = np.array([n not in peak_shape.param_names for n in names], dtype=bool)
        else:
            table = np.asarray(background_table, dtype=bool)
            if table.shape != (npar,):
                raise MisconfiguredComposition(
                    f"{self.name}: background table has {table.size} entries for {npar} parameters")

        self.peak_shape = peak_shape
        self.background_shape = background_shape
        self._bg_table = table
        self._peak_idx = np.array([names.index(n) for n in peak_shape.param_names], dtype=int)
        self._bg_idx = np.array([names.index(n) for n in background_shape.param_names], dtype=int)

        total = EvaluableFunction(self.name, self.total_function_value,
                                  x_range[0], x_range[1], npar, names)
        for shape in (background_shape, peak_shape):
            for pname, value in shape.defaults.items():
                total.set_parameter(names.index(pname), value)
            for pname, (lo, hi) in shape.limits.items():
                total.set_parameter_limits(names.index(pname), lo, hi)
        self.total_function = total
        return total

    def get_total_function(self) -> EvaluableFunction:
        if self.total_function is None:
            raise NotInitialized(f"{self.name}: no peak shape attached")
        return self.total_function

    # ------------------------------------------------------------------
    # Parameter classification
    # ------------------------------------------------------------------

    def get_n_parameters(self) -> int:
        """Number of parameters of the total function, 0 before a peak is attached."""
        if self.total_function is None:
            return 0
        return self.total_function.npar

    @property
    def n_parameters(self) -> int:
        return self.get_n_parameters()

    @property
    def parameter_names(self) -> List[str]:
        return list(self.total_function.param_names) if self.total_function is not None else []

    def classify(self, index: int) -> ParameterRole:
        """
        Role of parameter ``index``.

        Raises:
            IndexOutOfRange: If index is not in [0, N)
        """
        index = operator.index(index)
        npar = self.get_n_parameters()
        if not 0 <= index < npar:
            raise IndexOutOfRange(index, npar)
        return ParameterRole.BACKGROUND if self._bg_table[index] else ParameterRole.PEAK

    def is_background_parameter(self, index: int) -> bool:
        return self.classify(index) is ParameterRole.BACKGROUND

    def is_peak_parameter(self, index: int) -> bool:
        return not self.is_background_parameter(index)

    def background_parameter_indices(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self._bg_table)]

    def peak_parameter_indices(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(~self._bg_table)]

    def set_parameter(self, key: Union[int, str], value: float) -> None:
        """Set a total-function parameter by index or name."""
        total = self.get_total_function()
        index = total.parameter_index(key) if isinstance(key, str) else key
        total.set_parameter(index, value)

    def fix_background_parameters(self, value: Optional[float] = None) -> None:
        """Fix every background parameter, optionally setting it to ``value``."""
        total = self.get_total_function()
        for i in self.background_parameter_indices():
            total.fix_parameter(i, value)

    # ------------------------------------------------------------------
    # Component functions (full flat vector in, value out)
    # ------------------------------------------------------------------

    def peak_function(self, x, params):
        """Peak contribution alone. Reads the first N entries of ``params`` at most."""
        if self.peak_shape is None:
            raise NotInitialized(f"{self.name}: no peak shape attached")
        params = np.asarray(params, dtype=float)
        return self.peak_shape.func(x, *params[self._peak_idx])

    def background_function(self, x, params):
        """Local background contribution alone."""
        if self.background_shape is None:
            raise NotInitialized(f"{self.name}: no peak shape attached")
        params = np.asarray(params, dtype=float)
        return self.background_shape.func(x, *params[self._bg_idx])

    def total_function_value(self, x, params):
        return self.peak_function(x, params) + self.background_function(x, params)

    # ------------------------------------------------------------------
    # Background function (lazy, cached)
    # ------------------------------------------------------------------

    def get_background_function(self) -> EvaluableFunction:
        """
        Background-only function over the same N parameters as the total function.

        Built on first call and cached for the lifetime of the model. Its
        range is a placeholder; draw it over the total function's range.
        """
        if self._background_function is None:
            total = self.get_total_function()
            bg = EvaluableFunction(f"{self.name}_bg", self.background_function,
                                   PLACEHOLDER_RANGE[0], PLACEHOLDER_RANGE[1],
                                   total.npar, total.param_names)
            bg.line_style = BACKGROUND_LINE_STYLE
            self._background_function = bg
            log.debug("%s: built background function (%d parameters)", self.name, total.npar)
        return self._background_function

    @property
    def has_background_function(self) -> bool:
        return self._background_function is not None

    def update_background_parameters(self) -> None:
        """
        Copy the total function's current parameters into the background function.

        Raises:
            NotInitialized: If get_background_function() has not been called
        """
        if self._background_function is None:
            raise NotInitialized(
                f"{self.name}: background function not built; call get_background_function() first")
        total = self.get_total_function()
        self._background_function.set_parameters(total.parameters)
        self._background_function.set_par_errors(total.errors)

    # ------------------------------------------------------------------
    # Global background
    # ------------------------------------------------------------------

    def set_global_background(self, global_background: Optional[EvaluableFunction]) -> None:
        """Attach (or detach with None) a shared global background. The model does not own it."""
        self.global_background = global_background

    def peak_on_global_function(self, x, params):
        """
        Peak on top of the global background.

        ``params`` is the N local parameters followed by the M global-background
        parameters. Returns 0 when no global background is attached.
        """
        if self.global_background is None:
            return np.zeros(np.shape(x))
        return self._compose_peak_on_global(self.global_background.npar)(x, params)

    def _compose_peak_on_global(self, n_global: int):
        npar = self.get_total_function().npar

        def composed(x, params):
            gb = self.global_background
            if gb is None:
                return np.zeros(np.shape(x))
            if gb.npar != n_global:
                raise MisconfiguredComposition(
                    f"{self.name}: global background has {gb.npar} parameters, expected {n_global}")
            params = np.asarray(params, dtype=float)
            if params.size != npar + n_global:
                raise MisconfiguredComposition(
                    f"{self.name}: peak-on-global needs {npar + n_global} parameters, got {params.size}")
            return self.peak_function(x, params[:npar]) + gb.eval_par(x, params[npar:])
        return composed

    def make_peak_on_global_function(self) -> EvaluableFunction:
        """
        Temporary function for drawing the peak on the global background.

        Ranges over the global background's range with N + M parameters:
        the total function's values, then the global background's.
        """
        total = self.get_total_function()
        gb = self.global_background
        if gb is None:
            raise NotInitialized(f"{self.name}: no global background attached")
        n_global = gb.npar
        names = list(total.param_names) + [f"global_{n}" for n in gb.param_names]
        xmin, xmax = gb.get_range()
        func = EvaluableFunction("draw_peak", self._compose_peak_on_global(n_global),
                                 xmin, xmax, total.npar + n_global, names)
        for i in range(total.npar):
            func.set_parameter(i, total.get_parameter(i))
        for i in range(n_global):
            func.set_parameter(total.npar + i, gb.get_parameter(i))
        func.copy_style_from(total)
        return func

    def draw(self, ax=None, n_points: int = 500):
        """Draw the peak on the global background (nothing without one)."""
        from peakfit.peaks.peak_plotting import draw_peak_on_global
        return draw_peak_on_global(ax, self, n_points=n_points)

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def guess_parameters(self, x: np.ndarray, y: np.ndarray) -> None:
        """
        Initial values from data for the common parameter names
        (height/N, centroid/x0, sigma, bg_offset). Sets the range to the data span.
        """
        total = self.get_total_function()
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        imax = int(np.argmax(y))
        base = float(np.min(y))
        amp = max(float(y[imax]) - base, 1e-12)

        above = x[y - base >= 0.5 * amp]
        span = float(x.max() - x.min())
        fwhm = float(above.max() - above.min()) if above.size > 1 else span / 10.0
        sigma = max(fwhm / 2.3548, span / max(len(x), 1))

        guesses = {'height': amp, 'N': amp, 'centroid': float(x[imax]), 'x0': float(x[imax]),
                   'sigma': sigma, 'bg_offset': base}
        for name, value in guesses.items():
            if name in total.param_names:
                index = total.parameter_index(name)
                if not total.fixed[index]:
                    total.set_parameter(index, value)
        total.set_range(float(x.min()), float(x.max()))

    def fit(self, x: np.ndarray, y: np.ndarray, yerr: Optional[np.ndarray] = None,
            config: FitConfig = FitConfig(),
            x_range: Optional[Tuple[float, float]] = None):
        """
        Fit the total function to data and refresh the cached background function.

        Returns:
            lmfit MinimizerResult
        """
        total = self.get_total_function()
        if x_range is not None:
            total.set_range(*x_range)
        result = fit_function(total, x, y, yerr=yerr, config=config, x_range=x_range)
        if self._background_function is not None:
            self.update_background_parameters()
        return result

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    def _centroid_index(self) -> int:
        total = self.get_total_function()
        if self.peak_shape.centroid_param is None:
            raise ValueError(f"Peak shape '{self.peak_shape.name}' has no centroid parameter")
        return total.parameter_index(self.peak_shape.centroid_param)

    def centroid(self) -> float:
        return self.total_function.get_parameter(self._centroid_index())

    def centroid_err(self) -> float:
        return self.total_function.get_par_error(self._centroid_index())

    def _area_of(self, values: np.ndarray) -> float:
        peak_values = values[self._peak_idx]
        if self.peak_shape.area is not None:
            return float(self.peak_shape.area(*peak_values))
        lo, hi = self.total_function.get_range()
        area, _ = integrate.quad(lambda t: float(self.peak_function(t, values)), lo, hi,
                                 limit=QUAD_LIMIT)
        return float(area)

    def area(self) -> float:
        """Peak area (analytic if the shape defines it, else integrated over the range)."""
        total = self.get_total_function()
        return self._area_of(total.get_parameters())

    def area_err(self) -> float:
        """Area uncertainty propagated from the fit covariance (0 without one)."""
        total = self.get_total_function()
        if total.covariance is None:
            return 0.0
        values = total.get_parameters()
        grad = np.zeros(total.npar)
        for i in self._peak_idx:
            h = max(abs(values[i]) * 1e-6, 1e-9)
            up, down = values.copy(), values.copy()
            up[i] += h
            down[i] -= h
            grad[i] = (self._area_of(up) - self._area_of(down)) / (2 * h)
        var = float(grad @ total.covariance @ grad)
        return float(np.sqrt(max(var, 0.0)))

    def report(self) -> str:
        total = self.get_total_function()
        lines = []
        if self.peak_shape.centroid_param is not None:
            lines.append(f"Centroid = {self.centroid():.6g} +/- {self.centroid_err():.3g}")
        lines.append(f"Area = {self.area():.6g} +/- {self.area_err():.3g}")
        bg = [f"{total.param_names[i]}={total.get_parameter(i):.4g}"
              for i in self.background_parameter_indices()]
        lines.append("BG params = " + (", ".join(bg) if bg else "none"))
        return "\n".join(lines)

    def print_report(self) -> None:
        print(self.report())
