"""
Domain layer: entities, enums, value objects and business rule errors.
"""
