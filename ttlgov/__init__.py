"""
ttlgov package initializer

Keep this module lightweight. Do not import runtime modules here, so the
CLI and config layer load without pulling in the whole engine.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
