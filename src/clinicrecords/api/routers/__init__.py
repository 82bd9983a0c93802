"""
API routers package.
"""
