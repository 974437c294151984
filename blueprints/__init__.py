"""
Blueprints package for the fixture engine API
Contains the JSON routes for tournaments and matches
"""

from .tournaments import tournaments_bp
from .matches import matches_bp

__all__ = ['tournaments_bp', 'matches_bp']
