from flask import Blueprint, jsonify, request

from engine import repository
from engine.errors import ValidationError
from engine.results import update_match

matches_bp = Blueprint('matches', __name__, url_prefix='/api/matches')


@matches_bp.route('/<int:match_id>', methods=['GET'])
def match_detail(match_id):
    match = repository.get_match(match_id)
    return jsonify({'success': True, 'match': match.to_dict()})


@matches_bp.route('/<int:match_id>', methods=['PATCH'])
def edit_match(match_id):
    """Record scores, move the kickoff or change the status of a match."""
    changes = request.get_json(silent=True)
    if not isinstance(changes, dict) or not changes:
        raise ValidationError('Request body must be a non-empty JSON object')

    result = update_match(match_id, changes)
    return jsonify({'success': True, **result.to_dict()})
