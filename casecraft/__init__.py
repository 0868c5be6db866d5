"""
CaseCraft: turns requirements and uploaded user stories into manual test
cases. Layout: api/, core/, providers/, schemas/, services/, utils/.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
