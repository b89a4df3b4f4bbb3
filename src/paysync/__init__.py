"""
paysync - billing customers kept in sync with a remote payment processor.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
