from flask import Blueprint, jsonify, request

from engine import repository
from engine.errors import ValidationError
from engine.groups import (
    assign_teams_to_groups,
    complete_group_stage,
    generate_group_stage_matches,
    get_group_standings,
)
from engine.knockout import generate_knockout_matches
from engine.league import generate_league_matches
from engine.standings import recalculate_standings

tournaments_bp = Blueprint('tournaments', __name__, url_prefix='/api/tournaments')


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _schedule_options(data: dict) -> dict:
    """Per-request overrides accepted by the fixture generators."""
    return {
        'matches_per_day': data.get('matches_per_day'),
        'daily_start_time': data.get('daily_start_time'),
    }


def _matches_response(matches, status=200):
    return jsonify({
        'success': True,
        'count': len(matches),
        'matches': [match.to_dict() for match in matches],
    }), status


@tournaments_bp.route('/<int:tournament_id>', methods=['GET'])
def tournament_detail(tournament_id):
    tournament = repository.get_tournament(tournament_id)
    return jsonify({'success': True, 'tournament': tournament.to_dict()})


@tournaments_bp.route('/<int:tournament_id>/teams', methods=['GET'])
def tournament_teams(tournament_id):
    repository.get_tournament(tournament_id)
    teams = repository.list_teams(tournament_id)
    return jsonify({'success': True, 'teams': [team.to_dict() for team in teams]})


@tournaments_bp.route('/<int:tournament_id>/matches', methods=['GET'])
def tournament_matches(tournament_id):
    repository.get_tournament(tournament_id)
    stage = request.args.get('stage')
    matches = repository.list_matches(tournament_id, stages=[stage] if stage else None)
    return _matches_response(matches)


@tournaments_bp.route('/<int:tournament_id>/groups', methods=['POST'])
def assign_groups(tournament_id):
    """Random draw, or explicit ``assignments`` when given."""
    data = _payload()
    standings = assign_teams_to_groups(tournament_id, data.get('assignments'))
    return jsonify({'success': True, 'groups': [group.to_dict() for group in standings]})


@tournaments_bp.route('/<int:tournament_id>/league-matches', methods=['POST'])
def league_matches(tournament_id):
    matches = generate_league_matches(tournament_id, **_schedule_options(_payload()))
    return _matches_response(matches, 201)


@tournaments_bp.route('/<int:tournament_id>/group-matches', methods=['POST'])
def group_matches(tournament_id):
    matches = generate_group_stage_matches(tournament_id, **_schedule_options(_payload()))
    return _matches_response(matches, 201)


@tournaments_bp.route('/<int:tournament_id>/group-standings', methods=['GET'])
def group_standings(tournament_id):
    standings = get_group_standings(tournament_id)
    return jsonify({'success': True, 'groups': [group.to_dict() for group in standings]})


@tournaments_bp.route('/<int:tournament_id>/complete-group-stage', methods=['POST'])
def finish_group_stage(tournament_id):
    qualifiers = complete_group_stage(tournament_id)
    return jsonify({
        'success': True,
        'qualifiers': [
            {
                'team': qualifier.team.to_dict(),
                'group_number': qualifier.group_number,
                'position': qualifier.position,
            }
            for qualifier in qualifiers
        ],
    })


@tournaments_bp.route('/<int:tournament_id>/knockout', methods=['POST'])
def knockout_matches(tournament_id):
    matches = generate_knockout_matches(tournament_id)
    return _matches_response(matches, 201)


@tournaments_bp.route('/<int:tournament_id>/standings', methods=['POST'])
def refresh_standings(tournament_id):
    teams = recalculate_standings(tournament_id)
    return jsonify({'success': True, 'teams': [team.to_dict() for team in teams]})
