"""Web Game Builder - turn packaged web games into installable artifacts.

This package accepts a zipped HTML5 game, runs it through a platform
profile (Android package via Capacitor, or a repacked desktop bundle)
and serves the finished artifact.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
