"""
Core infrastructure modules.
"""
