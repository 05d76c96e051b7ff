"""
ValoCoach Core - Foundation modules shared by every layer.

This module contains:
- config: Application configuration management
- errors: Exception types raised by clients and pipelines
- schemas: Data contracts for module boundaries
"""

__all__: list[str] = ["config", "errors", "schemas"]
