"""Core infrastructure package for shared AutoStar functionality.

This package provides the foundational components used across all layers:

- **config**: Centralized configuration management with environment support
- **constants**: OpenAPI defaults and shared names
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Structured logging with Loguru
- **types**: Type aliases for better code clarity
"""
