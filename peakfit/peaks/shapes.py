"""
Peak and background shapes.

A ``Shape`` is a vectorized numpy function of ``(x, *values)`` together with
its ordered parameter names. Shapes are selected when a ``PeakModel`` is
built; parameters are linked across shapes by name, so a background shape
may read peak parameters (the step under a gamma-ray peak follows the peak's
height, centroid and sigma) without owning them.

Peak shapes
-----------
* gaussian         (height, centroid, sigma)
* skewed_gaussian  (height, centroid, sigma, R, beta)  low-side exponential tail
* radware          (height, centroid, sigma, R, beta)  gaussian + skewed gaussian
* crystal_ball     (N, beta, m, x0, sigma)             gauss core + power-law tail

Background shapes
-----------------
* no_background  ()
* constant       (bg_offset)
* linear         (bg_offset, bg_slope)
* quadratic      (bg_offset, bg_slope, bg_curvature)
* step           (height, centroid, sigma, step)     erfc step under the peak
* step_linear    step + linear
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple
import numpy as np
from scipy.special import erfc, erfcx

_SQRT2 = np.sqrt(2.0)
_SQRT2PI = np.sqrt(2.0 * np.pi)


# ============================================================================
# SHAPE TYPE
# ============================================================================

@dataclass(frozen=True)
class Shape:
    """
    A named function over an ordered list of parameters.

    Attributes:
        name: Shape identifier
        param_names: Parameter names, in the order ``func`` takes them
        func: Vectorized ``func(x, *values) -> array``
        centroid_param: Name of the parameter holding the peak position
        area: Optional analytic area ``area(*values)``
        defaults: Initial values by parameter name
        limits: (lo, hi) bounds by parameter name, None for unbounded
    """
    name: str
    param_names: Tuple[str, ...]
    func: Callable[..., np.ndarray]
    centroid_param: Optional[str] = None
    area: Optional[Callable[..., float]] = None
    defaults: Mapping[str, float] = field(default_factory=dict)
    limits: Mapping[str, Tuple[Optional[float], Optional[float]]] = field(default_factory=dict)

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    def evaluate(self, x, values) -> np.ndarray:
        return self.func(x, *values)

    def __repr__(self):
        return f"Shape({self.name}: {', '.join(self.param_names) or '-'})"


# ============================================================================
# PEAK FUNCTIONS
# ============================================================================

def gauss(x, height, centroid, sigma):
    """Gaussian with peak value ``height`` at ``centroid``."""
    return height * np.exp(-0.5 * ((x - centroid) / sigma) ** 2)


def gauss_area(height, centroid, sigma):
    return height * abs(sigma) * _SQRT2PI


def skewed_gauss(x, height, centroid, sigma, beta):
    """
    Gaussian convolved with a low-side exponential of decay length ``beta``.

    Evaluated as ``exp(d/beta) * erfc(z)`` where it is small and through the
    scaled ``erfcx`` where ``exp(d/beta)`` would overflow.
    """
    d = x - centroid
    z = d / (_SQRT2 * sigma) + sigma / (_SQRT2 * beta)
    with np.errstate(over='ignore', invalid='ignore'):
        direct = np.exp(d / beta) * erfc(z)
        scaled = np.exp(-0.5 * (d / sigma) ** 2 - 0.5 * (sigma / beta) ** 2) * erfcx(z)
    return height * np.where(z < 0, direct, scaled)


def skewed_gaussian(x, height, centroid, sigma, R, beta):
    """Skewed Gaussian carrying ``R`` percent of ``height``."""
    return skewed_gauss(x, R / 100.0 * height, centroid, sigma, beta)


def skewed_gaussian_area(height, centroid, sigma, R, beta):
    return R / 100.0 * height * 2.0 * beta * np.exp(-0.5 * (sigma / beta) ** 2)


def radware(x, height, centroid, sigma, R, beta):
    """
    Radware gamma-ray peak: Gaussian plus skewed Gaussian.

    ``R`` is the percentage of the height carried by the skewed component.
    """
    r = R / 100.0
    return (1.0 - r) * gauss(x, height, centroid, sigma) + skewed_gaussian(x, height, centroid, sigma, R, beta)


def radware_area(height, centroid, sigma, R, beta):
    r = R / 100.0
    return ((1.0 - r) * gauss_area(height, centroid, sigma)
            + skewed_gaussian_area(height, centroid, sigma, R, beta))


def v_crystalball(x, N, beta, m, x0, sigma):
    """
    Crystal Ball: Gaussian core with power-law tail.

    Args:
        x: Energy values
        N: Normalization amplitude
        beta: Tail parameter (negative for left tail)
        m: Tail exponent (>1)
        x0: Peak position
        sigma: Peak width
    """
    absb = np.abs(beta)
    z = (x - x0) / sigma
    gauss_core = np.exp(-0.5 * z ** 2)
    A_tail = (m / absb) ** m * np.exp(-0.5 * absb ** 2)
    B = m / absb - absb
    with np.errstate(divide='ignore', invalid='ignore'):
        tail = A_tail / (B - z) ** m
    return N * np.where(z > -absb, gauss_core, tail)


# ============================================================================
# BACKGROUND FUNCTIONS
# ============================================================================

def zero_background(x):
    return np.zeros_like(np.asarray(x, dtype=float))


def constant_background(x, bg_offset):
    return bg_offset + np.zeros_like(np.asarray(x, dtype=float))


def linear_background(x, bg_offset, bg_slope):
    return bg_offset + bg_slope * x


def quadratic_background(x, bg_offset, bg_slope, bg_curvature):
    return bg_offset + bg_slope * x + bg_curvature * x ** 2


def step_background(x, height, centroid, sigma, step):
    """Smoothed step below the peak: ``step`` percent of the height on the low side."""
    return height * step / 100.0 * 0.5 * erfc((x - centroid) / (_SQRT2 * sigma))


# ============================================================================
# COMPOSITION
# ============================================================================

def sum_shapes(name: str, *shapes: Shape) -> Shape:
    """
    Add shapes. Parameter names are merged in order of first appearance,
    so shapes that share a name share the parameter.
    """
    names = []
    for shape in shapes:
        names.extend(n for n in shape.param_names if n not in names)
    picks = [[names.index(n) for n in shape.param_names] for shape in shapes]

    def func(x, *values):
        total = 0.0
        for shape, idx in zip(shapes, picks):
            total = total + shape.func(x, *(values[i] for i in idx))
        return total

    defaults: Dict[str, float] = {}
    limits: Dict = {}
    for shape in shapes:
        defaults.update(shape.defaults)
        limits.update(shape.limits)
    return Shape(name, tuple(names), func, defaults=defaults, limits=limits)


# ============================================================================
# REGISTRY
# ============================================================================

GAUSS = Shape('gaussian', ('height', 'centroid', 'sigma'), gauss,
              centroid_param='centroid', area=gauss_area,
              defaults={'height': 1.0, 'centroid': 0.0, 'sigma': 1.0},
              limits={'sigma': (1e-9, None)})

SKEWED_GAUSSIAN = Shape('skewed_gaussian', ('height', 'centroid', 'sigma', 'R', 'beta'),
                        skewed_gaussian, centroid_param='centroid', area=skewed_gaussian_area,
                        defaults={'height': 1.0, 'centroid': 0.0, 'sigma': 1.0, 'R': 100.0, 'beta': 1.0},
                        limits={'sigma': (1e-9, None), 'R': (0.0, 100.0), 'beta': (1e-6, None)})

RADWARE = Shape('radware', ('height', 'centroid', 'sigma', 'R', 'beta'), radware,
                centroid_param='centroid', area=radware_area,
                defaults={'height': 1.0, 'centroid': 0.0, 'sigma': 1.0, 'R': 1.0, 'beta': 1.0},
                limits={'sigma': (1e-9, None), 'R': (0.0, 100.0), 'beta': (1e-6, None)})

CRYSTAL_BALL = Shape('crystal_ball', ('N', 'beta', 'm', 'x0', 'sigma'), v_crystalball,
                     centroid_param='x0',
                     defaults={'N': 1.0, 'beta': -1.5, 'm': 2.0, 'x0': 0.0, 'sigma': 1.0},
                     limits={'beta': (-5.0, -0.1), 'm': (1.0, 10.0), 'sigma': (1e-9, None)})

NO_BACKGROUND = Shape('no_background', (), zero_background)

CONSTANT = Shape('constant', ('bg_offset',), constant_background,
                 defaults={'bg_offset': 0.0})

LINEAR = Shape('linear', ('bg_offset', 'bg_slope'), linear_background,
               defaults={'bg_offset': 0.0, 'bg_slope': 0.0})

QUADRATIC = Shape('quadratic', ('bg_offset', 'bg_slope', 'bg_curvature'), quadratic_background,
                  defaults={'bg_offset': 0.0, 'bg_slope': 0.0, 'bg_curvature': 0.0})

STEP = Shape('step', ('height', 'centroid', 'sigma', 'step'), step_background,
             defaults={'step': 1.0}, limits={'step': (0.0, 100.0)})

STEP_LINEAR = sum_shapes('step_linear', STEP, LINEAR)

PEAK_SHAPES: Dict[str, Shape] = {s.name: s for s in (GAUSS, SKEWED_GAUSSIAN, RADWARE,
                                                     CRYSTAL_BALL)}
BACKGROUND_SHAPES: Dict[str, Shape] = {s.name: s for s in (NO_BACKGROUND, CONSTANT, LINEAR,
                                                           QUADRATIC, STEP, STEP_LINEAR)}


def get_peak_shape(name: str) -> Shape:
    if name not in PEAK_SHAPES:
        raise ValueError(f"Unknown peak shape: {name!r} (choose from {list(PEAK_SHAPES)})")
    return PEAK_SHAPES[name]


def get_background_shape(name: str) -> Shape:
    if name not in BACKGROUND_SHAPES:
        raise ValueError(f"Unknown background shape: {name!r} (choose from {list(BACKGROUND_SHAPES)})")
    return BACKGROUND_SHAPES[name]
