"""
Operator routes — lead listing/detail, lifecycle actions, clinic management.

Every route needs the admin token, sent as the X-Admin-Token header or the
`token` query parameter.
"""
import hmac
import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from fivmatch import database
from fivmatch.config import LEAD_STATUSES
from fivmatch.errors import GuardViolation, LeadNotFound, ClinicNotFound, DispatchError
from fivmatch.pipeline.lifecycle import STATUS_ACTIONS, available_actions
from fivmatch.services import db

logger = logging.getLogger('routes.admin')

bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _services():
    return current_app.extensions['fivmatch']


def token_matches(supplied, expected) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(str(supplied).encode(), str(expected).encode())


def require_admin(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        supplied = request.headers.get('X-Admin-Token') or request.args.get('token')
        if not supplied:
            return jsonify({'error': 'Unauthorized'}), 401
        if not token_matches(supplied, _services().settings.verify_token):
            return jsonify({'error': 'Forbidden'}), 403
        return view(*args, **kwargs)
    return wrapped


def _actor():
    return request.headers.get('X-Operator') or 'operator'


# ── Leads ────────────────────────────────────────────────────────────────────

@bp.route('/leads')
@require_admin
def list_leads():
    """Paginated lead list. Filters: status, tier, intent, city, clinic."""
    filters = {
        'status': request.args.get('status'),
        'lead_tier': request.args.get('tier'),
        'intent_level': request.args.get('intent'),
        'city': request.args.get('city'),
        'assigned_clinic_id': request.args.get('clinic'),
    }
    if filters['status'] and filters['status'] not in LEAD_STATUSES:
        return jsonify({'error': f"Unknown status: {filters['status']}"}), 400

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 50, type=int)
    session = database.get_session()
    try:
        rows, total = db.list_leads(session, filters, page=page, per_page=per_page)
        return jsonify({
            'leads': [lead.to_dict() for lead in rows],
            'total': total,
            'page': max(1, page),
            'per_page': max(1, min(per_page, db.MAX_PER_PAGE)),
        })
    except Exception as e:
        logger.error("Failed to list leads", exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/leads/<lead_ref>')
@require_admin
def lead_detail(lead_ref):
    """Single lead with its audit trail; accepts a UUID or short id."""
    session = database.get_session()
    try:
        lead = db.resolve_lead(session, lead_ref)
        data = lead.to_dict(include_events=True)
        data['assigned_clinic'] = lead.assigned_clinic.to_dict() if lead.assigned_clinic else None
        data['available_actions'] = available_actions(lead)
        return jsonify(data)
    except LeadNotFound as e:
        return jsonify({'error': str(e)}), 404
    finally:
        session.close()


def _body_text(data, key):
    """String field from the JSON body; anything else counts as absent."""
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, str) else None


def _run_action(lead_ref, action, clinic_id=None):
    """Shared body of every lifecycle endpoint."""
    data = request.get_json(silent=True)
    session = database.get_session()
    try:
        lead = db.resolve_lead(session, lead_ref)
        _services().lifecycle.transition(
            session, lead, action,
            actor=_actor(),
            notes=_body_text(data, 'notes'),
            clinic_id=clinic_id or _body_text(data, 'clinic_id'),
        )
        session.commit()
        return jsonify({'success': True, 'lead': lead.to_dict()})
    except (LeadNotFound, ClinicNotFound) as e:
        session.rollback()
        return jsonify({'error': str(e)}), 404
    except GuardViolation as e:
        session.rollback()
        logger.info("Lead %s: %s refused (%s)", lead_ref, action, e.code)
        return jsonify(e.to_dict()), 409
    except DispatchError as e:
        session.rollback()
        return jsonify({'error': str(e), 'code': 'dispatch_failed'}), 502
    except Exception as e:
        session.rollback()
        logger.error("Lead %s: %s failed", lead_ref, action, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/leads/<lead_ref>/call', methods=['POST'])
@require_admin
def call_lead(lead_ref):
    return _run_action(lead_ref, 'call')


@bp.route('/leads/<lead_ref>/verify', methods=['POST'])
@require_admin
def verify_lead(lead_ref):
    return _run_action(lead_ref, 'verify')


@bp.route('/leads/<lead_ref>/status', methods=['POST'])
@require_admin
def set_status(lead_ref):
    """Body: {status: VERIFIED_READY | LOW_INTENT_NURTURE | INVALID, notes?}"""
    status = _body_text(request.get_json(silent=True), 'status')
    action = STATUS_ACTIONS.get(status)
    if action is None:
        return jsonify({
            'error': f"Invalid status. Allowed: {', '.join(STATUS_ACTIONS)}",
        }), 400
    return _run_action(lead_ref, action)


@bp.route('/leads/<lead_ref>/assign', methods=['POST'])
@require_admin
def assign_lead(lead_ref):
    """Body: {clinic_id?, notes?}; without clinic_id the lead's city is routed."""
    return _run_action(lead_ref, 'assign')


@bp.route('/leads/<lead_ref>/send', methods=['POST'])
@require_admin
def send_lead(lead_ref):
    return _run_action(lead_ref, 'send')


@bp.route('/leads/<lead_ref>/notes', methods=['POST'])
@require_admin
def add_note(lead_ref):
    return _run_action(lead_ref, 'note')


# ── Clinics ──────────────────────────────────────────────────────────────────

@bp.route('/clinics')
@require_admin
def list_clinics():
    """Active clinics, by name."""
    session = database.get_session()
    try:
        return jsonify({'clinics': [c.to_dict() for c in db.list_active_clinics(session)]})
    finally:
        session.close()


@bp.route('/clinics', methods=['POST'])
@require_admin
def create_clinic():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip()
    if not name:
        return jsonify({'error': 'Name is required'}), 400
    if '@' not in email:
        return jsonify({'error': 'A valid email is required'}), 400

    session = database.get_session()
    try:
        clinic = db.insert_clinic(session, **{**data, 'name': name, 'email': email})
        session.commit()
        return jsonify(clinic.to_dict()), 201
    except Exception as e:
        session.rollback()
        logger.error("Failed to create clinic", exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/clinics/<clinic_id>')
@require_admin
def clinic_detail(clinic_id):
    session = database.get_session()
    try:
        return jsonify(db.get_clinic(session, clinic_id).to_dict())
    except ClinicNotFound as e:
        return jsonify({'error': str(e)}), 404
    finally:
        session.close()


@bp.route('/clinics/<clinic_id>', methods=['PUT'])
@require_admin
def update_clinic(clinic_id):
    """Partial update of name, email, phone, city_coverage, active, notes."""
    data = request.get_json(silent=True) or {}
    if 'email' in data and '@' not in str(data['email'] or ''):
        return jsonify({'error': 'A valid email is required'}), 400
    if 'city_coverage' in data and not isinstance(data['city_coverage'], list):
        return jsonify({'error': 'city_coverage must be a list'}), 400

    session = database.get_session()
    try:
        clinic = db.update_clinic(session, db.get_clinic(session, clinic_id), **data)
        session.commit()
        return jsonify(clinic.to_dict())
    except ClinicNotFound as e:
        session.rollback()
        return jsonify({'error': str(e)}), 404
    finally:
        session.close()


@bp.route('/clinics/<clinic_id>', methods=['DELETE'])
@require_admin
def delete_clinic(clinic_id):
    """Soft delete: the clinic stays on record but is no longer assignable."""
    session = database.get_session()
    try:
        db.update_clinic(session, db.get_clinic(session, clinic_id), active=False)
        session.commit()
        return jsonify({'ok': True})
    except ClinicNotFound as e:
        session.rollback()
        return jsonify({'error': str(e)}), 404
    finally:
        session.close()
