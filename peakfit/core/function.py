"""
Evaluable functions: a callable over a flat parameter vector plus the
parameter values, errors and cosmetics needed to fit and draw it.

An ``EvaluableFunction`` is what the optimizer fits against and what the
plotting helpers draw. The wrapped callable always receives the *full*
parameter vector::

    f = EvaluableFunction("line", lambda x, p: p[0] + p[1] * x, 0, 10, npar=2)
    f.set_parameters([2.0, 0.5])
    f.eval(3.0)                  # 3.5
    f.eval_par(3.0, [1.0, 1.0])  # 4.0

The stored range is cosmetic. It sets where the curve is drawn, but
evaluation never clips to it.
"""

import operator
from typing import Callable, List, Optional, Sequence, Tuple
import numpy as np

from peakfit.core.config import DEFAULT_LINE_COLOR, DEFAULT_LINE_STYLE
from peakfit.core.errors import IndexOutOfRange, MisconfiguredComposition


ParamFunc = Callable[[np.ndarray, np.ndarray], np.ndarray]


class EvaluableFunction:
    """
    A named function ``func(x, params)`` with ``npar`` fit parameters.

    Args:
        name: Identifier used in labels and parameter prefixes
        func: Callable taking (x, params) with params of length npar
        xmin, xmax: Display/fit range (not enforced during evaluation)
        npar: Number of parameters
        param_names: Optional names, defaults to p0, p1, ...
    """

    def __init__(self, name: str, func: ParamFunc, xmin: float, xmax: float,
                 npar: int, param_names: Optional[Sequence[str]] = None):
        if npar < 0:
            raise MisconfiguredComposition(f"npar must be >= 0, got {npar}")
        if param_names is not None and len(param_names) != npar:
            raise MisconfiguredComposition(
                f"{name}: {len(param_names)} parameter names for {npar} parameters")

        self.name = name
        self.func = func
        self.xmin = float(xmin)
        self.xmax = float(xmax)
        self.npar = int(npar)
        self.param_names: List[str] = (list(param_names) if param_names is not None
                                       else [f"p{i}" for i in range(npar)])

        self.parameters = np.zeros(self.npar)
        self.errors = np.zeros(self.npar)
        self.covariance: Optional[np.ndarray] = None
        self.fixed = np.zeros(self.npar, dtype=bool)
        self.limits: List[Tuple[Optional[float], Optional[float]]] = [(None, None)] * self.npar

        self.line_color = DEFAULT_LINE_COLOR
        self.line_style = DEFAULT_LINE_STYLE
        self.line_width = 1.5

    def __repr__(self):
        pars = ", ".join(f"{n}={v:.4g}" for n, v in zip(self.param_names, self.parameters))
        return f"EvaluableFunction({self.name}: [{self.xmin:g}, {self.xmax:g}], {pars})"

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def eval_par(self, x, params: Optional[Sequence[float]] = None):
        """Evaluate at x with an explicit parameter vector (stored values if None)."""
        if params is None:
            params = self.parameters
        else:
            params = np.asarray(params, dtype=float)
            if params.shape != (self.npar,):
                raise MisconfiguredComposition(
                    f"{self.name}: expected {self.npar} parameters, got {params.size}")
        return self.func(np.asarray(x, dtype=float), params)

    def eval(self, x):
        return self.eval_par(x)

    __call__ = eval

    # ------------------------------------------------------------------
    # Parameter access
    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> int:
        index = operator.index(index)
        if not 0 <= index < self.npar:
            raise IndexOutOfRange(index, self.npar)
        return index

    def get_parameter(self, index: int) -> float:
        return float(self.parameters[self._check_index(index)])

    def set_parameter(self, index: int, value: float) -> None:
        self.parameters[self._check_index(index)] = float(value)

    def get_parameters(self) -> np.ndarray:
        """Copy of the current parameter values."""
        return self.parameters.copy()

    def set_parameters(self, values: Sequence[float]) -> None:
        values = np.asarray(values, dtype=float)
        if values.shape != (self.npar,):
            raise MisconfiguredComposition(
                f"{self.name}: expected {self.npar} parameters, got {values.size}")
        self.parameters[:] = values

    def get_par_error(self, index: int) -> float:
        return float(self.errors[self._check_index(index)])

    def set_par_errors(self, errors: Sequence[float]) -> None:
        errors = np.asarray(errors, dtype=float)
        if errors.shape != (self.npar,):
            raise MisconfiguredComposition(
                f"{self.name}: expected {self.npar} errors, got {errors.size}")
        self.errors[:] = errors

    def parameter_index(self, name: str) -> int:
        try:
            return self.param_names.index(name)
        except ValueError:
            raise KeyError(f"{self.name} has no parameter '{name}'") from None

    def set_par_names(self, names: Sequence[str]) -> None:
        if len(names) != self.npar:
            raise MisconfiguredComposition(
                f"{self.name}: {len(names)} names for {self.npar} parameters")
        self.param_names = list(names)

    def fix_parameter(self, index: int, value: Optional[float] = None) -> None:
        """Exclude a parameter from fitting, optionally setting its value first."""
        index = self._check_index(index)
        if value is not None:
            self.parameters[index] = float(value)
        self.fixed[index] = True

    def release_parameter(self, index: int) -> None:
        self.fixed[self._check_index(index)] = False

    def set_parameter_limits(self, index: int, lo: Optional[float], hi: Optional[float]) -> None:
        index = self._check_index(index)
        if lo is not None and hi is not None and lo > hi:
            lo, hi = hi, lo
        self.limits[index] = (lo, hi)

    # ------------------------------------------------------------------
    # Range and cosmetics
    # ------------------------------------------------------------------

    def get_range(self) -> Tuple[float, float]:
        return self.xmin, self.xmax

    def set_range(self, xmin: float, xmax: float) -> None:
        self.xmin, self.xmax = float(xmin), float(xmax)

    def copy_style_from(self, other: "EvaluableFunction") -> None:
        self.line_color = other.line_color
        self.line_style = other.line_style
        self.line_width = other.line_width

    def sample(self, n_points: int = 500,
               x_range: Optional[Tuple[float, float]] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Return (x, y) on an even grid over x_range (the stored range if None)."""
        lo, hi = x_range if x_range is not None else (self.xmin, self.xmax)
        x = np.linspace(lo, hi, n_points)
        return x, np.broadcast_to(self.eval(x), x.shape)

    def draw(self, ax=None, n_points: int = 500,
             x_range: Optional[Tuple[float, float]] = None, **plot_kwargs):
        """
        Plot the curve over its range on a matplotlib axis.

        Returns:
            The Line2D that was added
        """
        if ax is None:
            import matplotlib.pyplot as plt
            ax = plt.gca()
        x, y = self.sample(n_points, x_range)
        style = dict(color=self.line_color, linestyle=self.line_style,
                     linewidth=self.line_width, label=self.name)
        style.update(plot_kwargs)
        line, = ax.plot(x, y, **style)
        return line
