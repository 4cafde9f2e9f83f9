"""
Overlay curves for fitted peaks.

Draws, on a matplotlib axis:
1. The total fit (peak + local background)
2. The local background alone
3. The peak sitting on a shared global background
4. Data with residuals

Drawing never changes a model's parameters. A curve that cannot be built
(missing component, mismatched parameter counts) is skipped with a warning
and nothing is drawn for it.
"""

import logging
from typing import Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt

from peakfit.core.config import DrawConfig
from peakfit.core.errors import PeakModelError
from peakfit.peaks.single_peak import PeakModel

log = logging.getLogger(__name__)


# ============================================================================
# SINGLE CURVES
# ============================================================================

def draw_total(ax, peak: PeakModel, n_points: int = 500, **plot_kwargs):
    """Draw the total function over its range. Returns the Line2D or None."""
    if ax is None:
        ax = plt.gca()
    try:
        total = peak.get_total_function()
        return total.draw(ax, n_points=n_points, **plot_kwargs)
    except PeakModelError as e:
        log.warning("Skipping total curve for %s: %s", peak.name, e)
        return None


def draw_background(ax, peak: PeakModel, n_points: int = 500, color: Optional[str] = None,
                    **plot_kwargs):
    """
    Draw the local background over the total function's range.

    Builds the background function on first use and refreshes its
    parameters from the total function before drawing.
    """
    if ax is None:
        ax = plt.gca()
    try:
        total = peak.get_total_function()
        bg = peak.get_background_function()
        peak.update_background_parameters()
    except PeakModelError as e:
        log.warning("Skipping background curve for %s: %s", peak.name, e)
        return None
    return bg.draw(ax, n_points=n_points, x_range=total.get_range(),
                   color=color or total.line_color, **plot_kwargs)


def draw_peak_on_global(ax, peak: PeakModel, n_points: int = 500, **plot_kwargs):
    """
    Draw the peak on top of the shared global background.

    Does nothing (returns None) when the peak has no global background.
    The curve spans the global background's range and uses the total
    function's color and line style unless ``plot_kwargs`` override them.
    The temporary function behind it is rebuilt from current parameters on
    every call.
    """
    if peak.global_background is None:
        return None
    if ax is None:
        ax = plt.gca()
    try:
        func = peak.make_peak_on_global_function()
        x, y = func.sample(n_points)
    except PeakModelError as e:
        log.warning("Skipping peak-on-global curve for %s: %s", peak.name, e)
        return None
    style = dict(color=func.line_color, linestyle=func.line_style,
                 linewidth=func.line_width, label=f"{peak.name} on global bg")
    style.update(plot_kwargs)
    line, = ax.plot(x, y, **style)
    return line


# ============================================================================
# COMPOSITE FIGURES
# ============================================================================

def plot_residuals(ax, x, data, model, show_poisson=True):
    """Plot residuals with optional Poisson error bands.

    Parameters
    ----------
    ax : matplotlib axis
        Axis to plot on
    x : array
        X-axis values (energy)
    data : array
        Observed data counts
    model : array
        Model prediction
    show_poisson : bool
        If True, show ±√N Poisson error bands
    """
    residuals = data - model
    ax.step(x, residuals, where='mid', color='black', linewidth=1.5)
    ax.axhline(0, color='red', linestyle='--', linewidth=1)

    if show_poisson:
        err = np.sqrt(np.clip(data, 0, None))
        ax.fill_between(x, -err, err, alpha=0.3, color='gray', label='±√N')
        ax.legend(fontsize=10, loc='upper right')

    ax.set_ylabel('Residuals')
    ax.grid(True, alpha=0.3)


def plot_peak_fit(x: np.ndarray, y: np.ndarray, peak: PeakModel,
                  ax=None, residuals: bool = True,
                  config: DrawConfig = DrawConfig(),
                  figsize: Tuple[float, float] = (8, 6),
                  model: Optional[np.ndarray] = None):
    """
    Plot data with the fitted total, background and peak-on-global curves.

    Parameters
    ----------
    x, y : array
        Bin centers and counts
    peak : PeakModel
        Fitted model
    ax : matplotlib axis, optional
        Main axis. If None a new figure is created (with a residual panel
        when ``residuals`` is True).
    residuals : bool
        Add a residual panel (only when ax is None)
    config : DrawConfig
        Sampling and cosmetics. Colors and styles are applied to the drawn
        lines only; the model keeps its own.
    figsize : tuple
        Size of a newly created figure
    model : array, optional
        Full model at ``x`` for the residual panel. Defaults to the total
        function plus the global background, which leaves neighbouring
        peaks of a joint fit in the residuals; pass ``MultiPeakFit.evaluate(x)``
        for those.

    Returns
    -------
    fig, axes : matplotlib figure and list of axes
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    if ax is None:
        if residuals:
            fig, (ax, ax_res) = plt.subplots(2, 1, figsize=figsize, sharex=True,
                                             gridspec_kw={'height_ratios': [3, 1]})
        else:
            fig, ax = plt.subplots(figsize=figsize)
            ax_res = None
    else:
        fig = ax.figure
        ax_res = None

    total_style = {'linewidth': config.line_width}
    if config.total_color is not None:
        total_style['color'] = config.total_color
    if config.total_line_style is not None:
        total_style['linestyle'] = config.total_line_style

    ax.step(x, y, where='mid', color=config.data_color, linewidth=1, label='Data')
    draw_total(ax, peak, n_points=config.n_points, **total_style)
    draw_background(ax, peak, n_points=config.n_points, color=config.total_color,
                    linestyle=config.background_line_style, linewidth=config.line_width)
    draw_peak_on_global(ax, peak, n_points=config.n_points, **total_style)
    if peak.global_background is not None:
        gb = peak.global_background
        gb.draw(ax, n_points=config.n_points, color=config.global_color,
                linestyle=config.background_line_style, linewidth=config.line_width)

    if peak.total_function is not None and peak.peak_shape.centroid_param is not None:
        ax.axvline(peak.centroid(), color=config.total_color or peak.total_function.line_color,
                   linestyle=':', linewidth=1, alpha=0.8)

    ax.set_ylabel('Counts')
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    axes = [ax]
    if ax_res is not None and (model is not None or peak.total_function is not None):
        if model is None:
            model = peak.total_function.eval(x)
            if peak.global_background is not None:
                model = model + peak.global_background.eval(x)
        plot_residuals(ax_res, x, y, model)
        ax_res.set_xlabel('Energy')
        axes.append(ax_res)
    else:
        ax.set_xlabel('Energy')

    fig.tight_layout()
    return fig, axes
