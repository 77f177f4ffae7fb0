"""
yield-history: historical yield series cache and derived-metrics engine.
"""

__version__ = "0.3.0"
