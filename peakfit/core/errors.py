"""Exception types raised by the peak-model engine."""


class PeakModelError(Exception):
    """Base class for peak-model errors."""


class IndexOutOfRange(PeakModelError, IndexError):
    """A parameter index lies outside [0, N)."""

    def __init__(self, index: int, npar: int):
        self.index = index
        self.npar = npar
        super().__init__(f"Parameter index {index} out of range [0, {npar})")


class NotInitialized(PeakModelError, RuntimeError):
    """An operation needs a component that has not been constructed yet."""


class MisconfiguredComposition(PeakModelError, ValueError):
    """Parameter counts of composed functions do not agree."""
