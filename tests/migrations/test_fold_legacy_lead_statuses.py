"""Tests for the legacy-status data migration, run against a SQLite copy of the old leads table."""
import importlib.util
from datetime import datetime
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.runtime.migration import MigrationContext
from alembic.operations import Operations

VERSIONS = Path(__file__).resolve().parents[2] / 'alembic' / 'versions'


def _load_revision(filename):
    spec = importlib.util.spec_from_file_location(filename[:-3], VERSIONS / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


fold = _load_revision('8b6e0d4f1c23_fold_legacy_lead_statuses.py')

DUE = datetime(2026, 3, 1, 9, 0)


def _legacy_table(metadata, with_operator_status=True):
    cols = [
        sa.Column('id', sa.Text, primary_key=True),
        sa.Column('status', sa.Text),
        sa.Column('assigned_clinic_id', sa.Text, nullable=True),
        sa.Column('nurture_completed', sa.Boolean, default=False),
        sa.Column('nurture_next_at', sa.DateTime(timezone=True), nullable=True),
    ]
    if with_operator_status:
        cols.append(sa.Column('operator_status', sa.Text, nullable=True))
    return sa.Table('leads', metadata, *cols)


def _upgrade(conn):
    with Operations.context(MigrationContext.configure(conn)):
        fold.upgrade()


def _rows(conn):
    result = conn.execute(sa.text(
        'SELECT id, status, assigned_clinic_id, nurture_completed, nurture_next_at FROM leads'
    ))
    return {row.id: row for row in result}


@pytest.fixture
def legacy_engine():
    engine = sa.create_engine('sqlite:///:memory:')
    yield engine
    engine.dispose()


class TestWithOperatorStatus:
    """Rows from the backend that tracked both a coarse status and operator_status."""

    @pytest.fixture
    def migrated(self, legacy_engine):
        metadata = sa.MetaData()
        leads = _legacy_table(metadata)
        with legacy_engine.begin() as conn:
            metadata.create_all(conn)
            conn.execute(leads.insert(), [
                {'id': 'fresh', 'status': 'new_unverified', 'operator_status': 'NEW',
                 'nurture_completed': False},
                {'id': 'called', 'status': 'new_unverified', 'operator_status': 'CALLED_NO_ANSWER',
                 'nurture_completed': False},
                {'id': 'verified', 'status': 'verified', 'operator_status': None,
                 'nurture_completed': False},
                {'id': 'assigned', 'status': 'assigned', 'operator_status': 'NEW',
                 'assigned_clinic_id': 'clinic-1', 'nurture_completed': False},
                {'id': 'sent', 'status': 'sent', 'operator_status': None,
                 'assigned_clinic_id': 'clinic-1', 'nurture_completed': False, 'nurture_next_at': DUE},
                {'id': 'sent_long', 'status': 'sent_to_clinic', 'operator_status': None,
                 'nurture_completed': False},
                {'id': 'rejected', 'status': 'rejected', 'operator_status': None,
                 'nurture_completed': False, 'nurture_next_at': DUE},
                {'id': 'operator_wins', 'status': 'verified', 'operator_status': 'INVALID',
                 'nurture_completed': False, 'nurture_next_at': DUE},
                {'id': 'nurturing', 'status': 'new_unverified', 'operator_status': 'LOW_INTENT_NURTURE',
                 'nurture_completed': False, 'nurture_next_at': DUE},
            ])
            _upgrade(conn)
        with legacy_engine.connect() as conn:
            return _rows(conn), sa.inspect(conn).get_columns('leads')

    @pytest.mark.parametrize('lead_id,expected', [
        ('fresh', 'NEW'),
        ('called', 'CALLED_NO_ANSWER'),
        ('verified', 'VERIFIED_READY'),
        ('assigned', 'VERIFIED_READY'),
        ('sent', 'SENT_TO_CLINIC'),
        ('sent_long', 'SENT_TO_CLINIC'),
        ('rejected', 'INVALID'),
        ('operator_wins', 'INVALID'),
        ('nurturing', 'LOW_INTENT_NURTURE'),
    ])
    def test_status_mapping(self, migrated, lead_id, expected):
        rows, _ = migrated
        assert rows[lead_id].status == expected

    def test_assigned_keeps_clinic(self, migrated):
        rows, _ = migrated
        assert rows['assigned'].assigned_clinic_id == 'clinic-1'

    @pytest.mark.parametrize('lead_id', ['sent', 'rejected', 'operator_wins'])
    def test_terminal_rows_leave_nurture(self, migrated, lead_id):
        rows, _ = migrated
        assert bool(rows[lead_id].nurture_completed) is True
        assert rows[lead_id].nurture_next_at is None

    def test_active_sequence_untouched(self, migrated):
        rows, _ = migrated
        assert bool(rows['nurturing'].nurture_completed) is False
        assert rows['nurturing'].nurture_next_at is not None

    def test_operator_status_column_dropped(self, migrated):
        _, columns = migrated
        assert 'operator_status' not in {c['name'] for c in columns}


class TestWithoutOperatorStatus:
    def test_maps_status_column_alone(self, legacy_engine):
        metadata = sa.MetaData()
        leads = _legacy_table(metadata, with_operator_status=False)
        with legacy_engine.begin() as conn:
            metadata.create_all(conn)
            conn.execute(leads.insert(), [
                {'id': 'a', 'status': 'assigned', 'assigned_clinic_id': 'clinic-9', 'nurture_completed': False},
                {'id': 'b', 'status': 'CALLED_NO_ANSWER', 'nurture_completed': False},
            ])
            _upgrade(conn)
        with legacy_engine.connect() as conn:
            rows = _rows(conn)
        assert rows['a'].status == 'VERIFIED_READY'
        assert rows['a'].assigned_clinic_id == 'clinic-9'
        assert rows['b'].status == 'CALLED_NO_ANSWER'
