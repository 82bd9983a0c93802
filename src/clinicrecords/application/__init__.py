"""
Application layer: ports, DTOs, read models and services.
"""
