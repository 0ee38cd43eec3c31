"""
Generation and synthesis provider adapters.
"""
