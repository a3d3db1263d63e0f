"""
Smart Queue Service
Queue admission, billing and one-time exit verification for a retail floor.
"""

__version__ = "1.0.0"
