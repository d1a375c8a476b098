"""
Core relay components.

This package contains the streaming pipeline and its collaborators:
- Daily salt derivation and tokenization
- Line parsing, classification and referrer sanitization
- Output routing with atomic handle swaps
- Rotation coordination
- Metrics collection
"""
