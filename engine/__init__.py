"""
Fixture engine for the company sports league
Round robins, scheduling, group stages, knockout brackets and results
"""

from .errors import (
    EngineError,
    ValidationError,
    NotFoundError,
    ConflictError,
    IncompleteResultError,
)
from .round_robin import generate_round_robin
from .scheduler import schedule_pairings
from .standings import recalculate_standings
from .groups import (
    assign_teams_to_groups,
    generate_group_stage_matches,
    get_group_standings,
    complete_group_stage,
)
from .knockout import generate_knockout_matches, plan_bracket, seed_qualifiers
from .league import generate_league_matches
from .results import update_match

__all__ = [
    'EngineError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'IncompleteResultError',
    'generate_round_robin',
    'schedule_pairings',
    'recalculate_standings',
    'assign_teams_to_groups',
    'generate_group_stage_matches',
    'get_group_standings',
    'complete_group_stage',
    'generate_knockout_matches',
    'plan_bracket',
    'seed_qualifiers',
    'generate_league_matches',
    'update_match',
]
