"""
ffpkg — fetch, verify and atomically install a single release build.
"""

__version__ = "0.1.0"
