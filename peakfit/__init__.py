"""
Peak-model composition for measured energy spectra.

Subpackages:
- core: evaluable functions, lmfit fitting adapter, errors, configuration
- peaks: peak/background shapes, single-peak models, joint fits, plotting
"""

__version__ = "0.1.0"
