"""
Internal routes — triggered by the external scheduler, not by users.
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from fivmatch.pipeline.nurture import run_nurture_batch
from fivmatch.routes.admin import token_matches

logger = logging.getLogger('routes.internal')

bp = Blueprint('internal', __name__, url_prefix='/internal')


@bp.route('/run-nurture', methods=['POST'])
def run_nurture():
    """Run one nurture batch. Auth: X-Internal-Token header."""
    services = current_app.extensions['fivmatch']
    if not token_matches(request.headers.get('X-Internal-Token'), services.settings.internal_cron_token):
        return jsonify({'error': 'Unauthorized'}), 401

    try:
        summary = run_nurture_batch(services.settings, services.email)
        return jsonify({'success': True, **summary})
    except Exception as e:
        logger.error("Nurture run failed", exc_info=True)
        return jsonify({'error': str(e)}), 500
