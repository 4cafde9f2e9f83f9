"""
Peak models for spectrum fitting.

Modules:
- shapes: Peak and background shape functions
- single_peak: PeakModel (parameter classification, total/background/peak-on-global functions)
- multi_peak: Joint fits of several peaks on a shared global background
- peak_plotting: Overlay curves and fit figures
"""

# Shapes
from peakfit.peaks.shapes import (
    Shape,
    sum_shapes,
    get_peak_shape,
    get_background_shape,
    GAUSS,
    SKEWED_GAUSSIAN,
    RADWARE,
    CRYSTAL_BALL,
    NO_BACKGROUND,
    CONSTANT,
    LINEAR,
    QUADRATIC,
    STEP,
    STEP_LINEAR,
)

# Models
from peakfit.peaks.single_peak import PeakModel, ParameterRole
from peakfit.peaks.multi_peak import MultiPeakFit, make_global_background

# Visualization
from peakfit.peaks.peak_plotting import (
    draw_total,
    draw_background,
    draw_peak_on_global,
    plot_peak_fit,
    plot_residuals,
)

__all__ = [
    # Shapes
    'Shape',
    'sum_shapes',
    'get_peak_shape',
    'get_background_shape',
    'GAUSS',
    'SKEWED_GAUSSIAN',
    'RADWARE',
    'CRYSTAL_BALL',
    'NO_BACKGROUND',
    'CONSTANT',
    'LINEAR',
    'QUADRATIC',
    'STEP',
    'STEP_LINEAR',
    # Models
    'PeakModel',
    'ParameterRole',
    'MultiPeakFit',
    'make_global_background',
    # Plotting
    'draw_total',
    'draw_background',
    'draw_peak_on_global',
    'plot_peak_fit',
    'plot_residuals',
]
