"""
Adapters layer: concrete implementations of application ports.
"""
