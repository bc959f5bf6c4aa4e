"""
Public intake route — POST /api/leads.

Response shapes:
  201  {success, message, next_steps, lead_id}   accepted (or silently filtered)
  422  {error, fields}                            validation failed
  400  {error}                                    body is not a JSON object
  500  {error}                                    anything unexpected
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from fivmatch.messages import api_message, resolve_locale
from fivmatch.pipeline.intake import submit_lead
from fivmatch.services.ip_hash import client_ip, hash_ip

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)


def _services():
    return current_app.extensions['fivmatch']


@bp.route('/api/leads', methods=['POST'])
def create_lead():
    """Intake endpoint for the public form."""
    locale = resolve_locale(None)
    try:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({'error': api_message('invalid_json', locale)}), 400

        locale = resolve_locale(body.get('locale'))
        services = _services()
        ip_hash = hash_ip(client_ip(request.headers, request.remote_addr), services.settings.ip_hash_salt)

        outcome = submit_lead(
            body,
            ip_hash,
            gate=services.gate,
            user_agent=request.headers.get('User-Agent'),
        )
        locale = outcome.locale

        if not outcome.accepted:
            return jsonify({
                'error': api_message('validation_failed', locale),
                'fields': outcome.field_errors,
            }), 422

        return jsonify({
            'success': True,
            'message': api_message('success', locale),
            'next_steps': api_message('next_steps', locale),
            'lead_id': outcome.lead_id,
        }), 201

    except Exception:
        logger.error("Unexpected error in POST /api/leads", exc_info=True)
        return jsonify({'error': api_message('server_error', locale)}), 500
