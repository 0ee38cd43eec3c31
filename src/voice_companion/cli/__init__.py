"""
Voice companion console
"""
