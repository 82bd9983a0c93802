"""
Core configuration, logging and infrastructure exceptions.
"""
