"""
Services package for the voice companion engine.

This package contains the conversation, generation, directive and page-action services.
"""
