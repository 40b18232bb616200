"""
Logistics route lifecycle and assignment API.
"""

__version__ = "0.1.0"
