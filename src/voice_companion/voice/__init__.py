"""
Voice pipeline: phase coordination, recognition and synthesis.
"""
