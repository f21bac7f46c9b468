"""
PR Mirror — Replay merged upstream pull requests as downstream pull requests.
"""

__version__ = "1.0.0"
