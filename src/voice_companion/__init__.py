"""
Voice companion: an autonomous voice conversation and page-action engine.
"""

__version__ = "1.0.0"
