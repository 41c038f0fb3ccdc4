"""
Infrastructure layer package.

This package contains modules for interacting with the outside world:
- Logging configuration
- Path utilities

Modules here must not import the core filter logic.
"""
