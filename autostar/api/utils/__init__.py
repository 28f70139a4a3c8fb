"""Utility modules for the HTTP layer.

- **responses**: JSON response class using orjson
"""
