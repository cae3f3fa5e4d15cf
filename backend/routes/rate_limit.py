# =============================================================================
# AgriMarket Backend
# routes/rate_limit.py - Rate Limit Status Routes
#
# Lets clients inspect and consume per-action quotas so the UI can show
# remaining attempts before a form is submitted.
# =============================================================================

import re
from flask import Blueprint, request, jsonify, g

from errors import ValidationError
from rate_limit import PRESET_LIMITERS
from utils import get_client_ip

# Create blueprint
rate_limit_bp = Blueprint('rate_limit', __name__)

ACTION_PATTERN = re.compile(r'^[a-z0-9_-]{1,40}$')


def _resolve(action):
    if not ACTION_PATTERN.match(action):
        raise ValidationError('Invalid action name')

    preset = request.args.get('preset', 'normal')
    limiter = PRESET_LIMITERS.get(preset)
    if limiter is None:
        raise ValidationError('Unknown preset', details={'allowed': list(PRESET_LIMITERS)})
    return limiter


@rate_limit_bp.route('/<action>', methods=['GET'])
def get_status(action):
    """
    Current quota for an action without consuming it.

    Query Parameters:
        preset (str): strict, normal or relaxed (default normal)

    Returns:
        200: {total, remaining, reset}
    """
    limiter = _resolve(action)
    info = limiter.status(action, get_client_ip())
    g.rate_limit_info = info
    return jsonify(info.to_dict()), 200


@rate_limit_bp.route('/<action>', methods=['POST'])
def consume(action):
    """
    Consume one attempt for an action.

    Returns:
        200: {total, remaining, reset}
        429: Quota exhausted for the current window
    """
    limiter = _resolve(action)
    info = limiter.check(action, get_client_ip())
    g.rate_limit_info = info
    return jsonify(info.to_dict()), 200
