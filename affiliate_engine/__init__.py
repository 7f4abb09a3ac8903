"""
Affiliate commission resolution and settlement engine.

Library-level engine invoked in-process by the storefront (order capture)
and by the scheduled workers in the ``jobs`` package.
"""

__version__ = "1.0.0"
