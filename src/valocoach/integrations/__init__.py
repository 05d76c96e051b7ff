"""
ValoCoach Integrations - External service integrations.

This module contains:
- valorant_api: HenrikDev VALORANT REST API client
- valorant_models: pydantic response schemas for that API
- aimlab: Aim Lab GraphQL client
"""

__all__: list[str] = ["valorant_api", "valorant_models", "aimlab"]
