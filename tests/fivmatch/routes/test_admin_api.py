"""Tests for fivmatch.routes.admin — operator lead actions and clinic management."""
from unittest.mock import patch, MagicMock

import pytest

from fivmatch.models.lead import Lead

AUTH = {'X-Admin-Token': 'admin-secret'}


def _ok_response(message_id='email_1'):
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {'id': message_id}
    return resp


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:
    def test_missing_token_401(self, client):
        assert client.get('/api/admin/leads').status_code == 401

    def test_wrong_token_403(self, client):
        resp = client.get('/api/admin/leads', headers={'X-Admin-Token': 'guess'})
        assert resp.status_code == 403

    def test_query_token(self, client):
        assert client.get('/api/admin/leads?token=admin-secret').status_code == 200

    def test_actions_protected(self, client, make_lead):
        lead = make_lead()
        assert client.post(f'/api/admin/leads/{lead.id}/verify').status_code == 401


# ---------------------------------------------------------------------------
# Listing / detail
# ---------------------------------------------------------------------------

class TestListLeads:
    def test_lists_with_total(self, client, make_lead):
        make_lead()
        make_lead(status='INVALID')
        data = client.get('/api/admin/leads', headers=AUTH).json
        assert data['total'] == 2
        assert data['page'] == 1
        assert len(data['leads']) == 2

    def test_status_filter(self, client, make_lead):
        make_lead()
        make_lead(status='INVALID')
        data = client.get('/api/admin/leads?status=INVALID', headers=AUTH).json
        assert [l['status'] for l in data['leads']] == ['INVALID']

    def test_unknown_status_400(self, client):
        assert client.get('/api/admin/leads?status=assigned', headers=AUTH).status_code == 400

    def test_tier_and_intent_filters(self, client, make_lead):
        make_lead(lead_tier='A', intent_level='high')
        make_lead(lead_tier='D', intent_level='low')
        data = client.get('/api/admin/leads?tier=D&intent=low', headers=AUTH).json
        assert data['total'] == 1


class TestLeadDetail:
    def test_by_short_id(self, client, make_lead):
        lead = make_lead()
        data = client.get(f'/api/admin/leads/{lead.short_id}', headers=AUTH).json
        assert data['id'] == lead.id
        assert data['events'] == []
        assert data['assigned_clinic'] is None
        assert {a['action'] for a in data['available_actions']} == {
            'call', 'verify', 'nurture', 'invalidate', 'note',
        }

    def test_not_found(self, client):
        assert client.get('/api/admin/leads/DEADBEEF', headers=AUTH).status_code == 404


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------

class TestActions:
    def test_call(self, client, make_lead):
        lead = make_lead()
        resp = client.post(f'/api/admin/leads/{lead.id}/call', headers={**AUTH, 'X-Operator': 'ana'},
                           json={'notes': 'No answer'})
        assert resp.status_code == 200
        assert resp.json['lead']['status'] == 'CALLED_NO_ANSWER'
        assert resp.json['lead']['call_attempts'] == 1

        detail = client.get(f'/api/admin/leads/{lead.id}', headers=AUTH).json
        assert [e['type'] for e in detail['events']] == ['OPERATOR_CALLED', 'STATUS_CHANGED']
        assert detail['events'][0]['actor'] == 'ana'

    def test_verify_recomputes_tier(self, client, make_lead):
        lead = make_lead()
        data = client.post(f'/api/admin/leads/{lead.short_id}/verify', headers=AUTH).json
        assert data['lead']['status'] == 'VERIFIED_READY'
        assert data['lead']['lead_tier'] == 'A'
        assert data['lead']['verified_at'] is not None

    @pytest.mark.parametrize('status,expected', [
        ('VERIFIED_READY', 'VERIFIED_READY'),
        ('LOW_INTENT_NURTURE', 'LOW_INTENT_NURTURE'),
        ('INVALID', 'INVALID'),
    ])
    def test_status_endpoint(self, client, make_lead, status, expected):
        lead = make_lead()
        resp = client.post(f'/api/admin/leads/{lead.id}/status', headers=AUTH, json={'status': status})
        assert resp.status_code == 200
        assert resp.json['lead']['status'] == expected

    @pytest.mark.parametrize('status', ['NEW', 'SENT_TO_CLINIC', 'bogus', None])
    def test_status_endpoint_rejects_other_values(self, client, make_lead, status):
        lead = make_lead()
        resp = client.post(f'/api/admin/leads/{lead.id}/status', headers=AUTH, json={'status': status})
        assert resp.status_code == 400

    def test_guard_violation_409(self, client, make_lead, db_session):
        lead = make_lead(status='INVALID')
        resp = client.post(f'/api/admin/leads/{lead.id}/verify', headers=AUTH)
        assert resp.status_code == 409
        assert resp.json['code'] == 'terminal_state'
        assert resp.json['action'] == 'verify'
        db_session.expire_all()
        assert db_session.get(Lead, lead.id).status == 'INVALID'

    def test_unknown_lead_404(self, client):
        resp = client.post('/api/admin/leads/00000000-0000-0000-0000-000000000001/call', headers=AUTH)
        assert resp.status_code == 404

    def test_assign_explicit(self, client, make_lead, make_clinic):
        clinic = make_clinic()
        lead = make_lead(status='VERIFIED_READY')
        resp = client.post(f'/api/admin/leads/{lead.id}/assign', headers=AUTH, json={'clinic_id': clinic.id})
        assert resp.status_code == 200
        assert resp.json['lead']['assigned_clinic_id'] == clinic.id

    def test_assign_unknown_clinic_404(self, client, make_lead):
        lead = make_lead(status='VERIFIED_READY')
        resp = client.post(f'/api/admin/leads/{lead.id}/assign', headers=AUTH, json={'clinic_id': 'nope'})
        assert resp.status_code == 404

    def test_assign_routed_to_default(self, client, make_lead, make_clinic):
        clinic = make_clinic(email='leads@fivmatch.ro')
        lead = make_lead(status='VERIFIED_READY', city='Oradea')
        resp = client.post(f'/api/admin/leads/{lead.id}/assign', headers=AUTH)
        assert resp.json['lead']['assigned_clinic_id'] == clinic.id

    def test_assign_unverified_409(self, client, make_lead, make_clinic):
        clinic = make_clinic()
        lead = make_lead()
        resp = client.post(f'/api/admin/leads/{lead.id}/assign', headers=AUTH, json={'clinic_id': clinic.id})
        assert resp.status_code == 409
        assert resp.json['code'] == 'not_verified'

    @patch('fivmatch.services.email.requests.post')
    def test_send(self, mock_post, client, make_lead, make_clinic):
        mock_post.return_value = _ok_response()
        clinic = make_clinic()
        lead = make_lead(status='VERIFIED_READY', assigned_clinic_id=clinic.id)
        resp = client.post(f'/api/admin/leads/{lead.id}/send', headers=AUTH)
        assert resp.status_code == 200
        assert resp.json['lead']['status'] == 'SENT_TO_CLINIC'
        payload = mock_post.call_args.kwargs['json']
        assert payload['to'] == [clinic.email]
        assert payload['cc'] == ['monitor@fivmatch.ro']

    @patch('fivmatch.services.email.requests.post')
    def test_send_delivery_failure_502(self, mock_post, client, make_lead, make_clinic, db_session):
        failed = MagicMock()
        failed.status_code = 500
        failed.text = 'internal error'
        mock_post.return_value = failed
        clinic = make_clinic()
        lead = make_lead(status='VERIFIED_READY', assigned_clinic_id=clinic.id)

        resp = client.post(f'/api/admin/leads/{lead.id}/send', headers=AUTH)
        assert resp.status_code == 502
        assert resp.json['code'] == 'dispatch_failed'
        db_session.expire_all()
        assert db_session.get(Lead, lead.id).status == 'VERIFIED_READY'

    def test_send_without_clinic_409(self, client, make_lead):
        lead = make_lead(status='VERIFIED_READY')
        resp = client.post(f'/api/admin/leads/{lead.id}/send', headers=AUTH)
        assert resp.status_code == 409
        assert resp.json['code'] == 'no_clinic_assigned'

    def test_notes(self, client, make_lead):
        lead = make_lead(status='SENT_TO_CLINIC')
        resp = client.post(f'/api/admin/leads/{lead.id}/notes', headers=AUTH, json={'notes': 'Clinic called back'})
        assert resp.status_code == 200
        assert resp.json['lead']['operator_notes'].endswith(': Clinic called back')

    @pytest.mark.parametrize('action', ['call', 'verify', 'assign', 'notes'])
    def test_non_string_notes_ignored(self, client, make_lead, make_clinic, action):
        make_clinic(email='leads@fivmatch.ro')
        lead = make_lead(status='VERIFIED_READY', city='Oradea')
        resp = client.post(f'/api/admin/leads/{lead.id}/{action}', headers=AUTH, json={'notes': 5})
        if action == 'notes':
            assert resp.status_code == 409
            assert resp.json['code'] == 'empty_note'
        else:
            assert resp.status_code == 200
            assert resp.json['lead']['operator_notes'] is None

    def test_array_body_treated_as_empty(self, client, make_lead):
        lead = make_lead()
        assert client.post(f'/api/admin/leads/{lead.id}/verify', headers=AUTH, json=[1, 2]).status_code == 200
        assert client.post(f'/api/admin/leads/{lead.id}/status', headers=AUTH, json=['INVALID']).status_code == 400

    def test_empty_note_409(self, client, make_lead):
        lead = make_lead()
        resp = client.post(f'/api/admin/leads/{lead.id}/notes', headers=AUTH, json={'notes': ''})
        assert resp.status_code == 409
        assert resp.json['code'] == 'empty_note'


# ---------------------------------------------------------------------------
# Clinics
# ---------------------------------------------------------------------------

class TestClinics:
    def test_create(self, client):
        resp = client.post('/api/admin/clinics', headers=AUTH, json={
            'name': ' FertiCluj ', 'email': 'contact@ferticluj.ro', 'city_coverage': ['Cluj-Napoca'],
        })
        assert resp.status_code == 201
        assert resp.json['name'] == 'FertiCluj'
        assert resp.json['active'] is True
        assert resp.json['city_coverage'] == ['Cluj-Napoca']

    @pytest.mark.parametrize('body', [{'email': 'a@b.ro'}, {'name': 'X', 'email': 'nope'}, {}])
    def test_create_invalid(self, client, body):
        assert client.post('/api/admin/clinics', headers=AUTH, json=body).status_code == 400

    def test_list_active_only(self, client, make_clinic):
        make_clinic(name='Active')
        make_clinic(name='Retired', email='old@clinic.example', active=False)
        data = client.get('/api/admin/clinics', headers=AUTH).json
        assert [c['name'] for c in data['clinics']] == ['Active']

    def test_detail_and_404(self, client, make_clinic):
        clinic = make_clinic()
        assert client.get(f'/api/admin/clinics/{clinic.id}', headers=AUTH).json['id'] == clinic.id
        assert client.get('/api/admin/clinics/missing', headers=AUTH).status_code == 404

    def test_update(self, client, make_clinic):
        clinic = make_clinic()
        resp = client.put(f'/api/admin/clinics/{clinic.id}', headers=AUTH,
                          json={'phone': '+40 264 111 222', 'city_coverage': ['Cluj-Napoca', 'Sibiu']})
        assert resp.status_code == 200
        assert resp.json['phone'] == '+40 264 111 222'
        assert resp.json['city_coverage'] == ['Cluj-Napoca', 'Sibiu']

    @pytest.mark.parametrize('body', [{'email': 'broken'}, {'city_coverage': 'Cluj'}])
    def test_update_invalid(self, client, make_clinic, body):
        clinic = make_clinic()
        assert client.put(f'/api/admin/clinics/{clinic.id}', headers=AUTH, json=body).status_code == 400

    def test_delete_is_soft(self, client, make_clinic):
        clinic = make_clinic()
        assert client.delete(f'/api/admin/clinics/{clinic.id}', headers=AUTH).json == {'ok': True}
        assert client.get(f'/api/admin/clinics/{clinic.id}', headers=AUTH).json['active'] is False
        assert client.get('/api/admin/clinics', headers=AUTH).json['clinics'] == []

    def test_delete_missing_404(self, client):
        assert client.delete('/api/admin/clinics/missing', headers=AUTH).status_code == 404
