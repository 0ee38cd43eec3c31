"""
Core settings, errors and HTTP plumbing.
"""
