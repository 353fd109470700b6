"""
HomePanel - multi-household smart home control panel backend.
"""

__version__ = "0.1.0"
