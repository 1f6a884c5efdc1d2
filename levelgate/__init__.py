"""
levelgate
Level progression access control for a multi-level puzzle competition.
"""

__version__ = "1.0.0"
