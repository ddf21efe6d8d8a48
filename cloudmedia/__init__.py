"""
CloudMedia — target-size media compression over a cloud transform API.
"""

__version__ = "0.1.0"
