"""Function objects, fitting adapter, errors and configuration."""

from peakfit.core.errors import (
    PeakModelError,
    IndexOutOfRange,
    NotInitialized,
    MisconfiguredComposition,
)
from peakfit.core.config import FitConfig, DrawConfig, PLACEHOLDER_RANGE
from peakfit.core.function import EvaluableFunction
from peakfit.core.fitting import fit_function, function_to_lmfit_params

__all__ = [
    'PeakModelError',
    'IndexOutOfRange',
    'NotInitialized',
    'MisconfiguredComposition',
    'FitConfig',
    'DrawConfig',
    'PLACEHOLDER_RANGE',
    'EvaluableFunction',
    'fit_function',
    'function_to_lmfit_params',
]
