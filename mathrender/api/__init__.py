"""
API package for mathrender.

This package contains the FastAPI routers.
"""
