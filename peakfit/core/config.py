from dataclasses import dataclass
from typing import Optional, Tuple

# -------------------------------
# Function defaults
# -------------------------------
# Range given to derived functions before a real one is known (display only)
PLACEHOLDER_RANGE: Tuple[float, float] = (0.0, 1.0)

BACKGROUND_LINE_STYLE = '--'
DEFAULT_LINE_COLOR = 'red'
DEFAULT_LINE_STYLE = '-'

# Subinterval limit for numerically integrated peak areas
QUAD_LIMIT = 200


@dataclass(frozen=True)
class FitConfig:
    method: str = 'leastsq'              # lmfit minimizer method
    poisson_weights: bool = True         # sigma = sqrt(max(y, 1)) when no yerr given
    max_nfev: Optional[int] = None       # max function evaluations (None = lmfit default)
    use_limits: bool = True              # apply per-parameter (lo, hi) bounds


@dataclass(frozen=True)
class DrawConfig:
    """Cosmetics and sampling for overlay curves."""
    n_points: int = 500                   # samples per drawn curve
    total_color: Optional[str] = None     # None keeps the total function's own style
    total_line_style: Optional[str] = None
    background_line_style: str = BACKGROUND_LINE_STYLE
    global_color: str = 'green'
    line_width: float = 1.5
    data_color: str = 'black'
