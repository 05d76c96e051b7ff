"""
ValoCoach Analysis - Pure transformations over match payloads.
"""

from valocoach.analysis.extract import extract_player_view

__all__ = ["extract_player_view"]
