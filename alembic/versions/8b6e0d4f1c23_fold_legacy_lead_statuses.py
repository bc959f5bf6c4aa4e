"""Fold legacy lead statuses into the canonical lifecycle

Revision ID: 8b6e0d4f1c23
Revises: 3f1a9c2d7e40
Create Date: 2026-03-09 14:30:00.000000

Rows imported from the old form backend carry a coarse lower-case `status`
(new_unverified, verified, assigned, sent, ...) and, on some of them, an
`operator_status` column. Map both onto the single canonical status; a
non-NEW operator_status wins. One-way: the downgrade leaves the data alone.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b6e0d4f1c23'
down_revision: Union[str, Sequence[str], None] = '3f1a9c2d7e40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


LEGACY_STATUS_MAP = {
    'new_unverified': 'NEW',
    'verified': 'VERIFIED_READY',
    'assigned': 'VERIFIED_READY',
    'sent': 'SENT_TO_CLINIC',
    'sent_to_clinic': 'SENT_TO_CLINIC',
    'rejected': 'INVALID',
}

OPERATOR_STATUSES = ['CALLED_NO_ANSWER', 'VERIFIED_READY', 'LOW_INTENT_NURTURE', 'INVALID', 'SENT_TO_CLINIC']


def upgrade() -> None:
    """Upgrade schema."""
    columns = {c['name'] for c in sa.inspect(op.get_bind()).get_columns('leads')}
    has_operator_status = 'operator_status' in columns

    cols = [
        sa.column('status', sa.Text()),
        sa.column('nurture_completed', sa.Boolean()),
        sa.column('nurture_next_at', sa.DateTime(timezone=True)),
    ]
    if has_operator_status:
        cols.append(sa.column('operator_status', sa.Text()))
    leads = sa.table('leads', *cols)

    if has_operator_status:
        op.execute(
            leads.update()
            .where(leads.c.operator_status.in_(OPERATOR_STATUSES))
            .values(status=leads.c.operator_status)
        )

    for legacy, canonical in LEGACY_STATUS_MAP.items():
        op.execute(leads.update().where(leads.c.status == legacy).values(status=canonical))

    # Terminal leads must not stay in a nurture sequence.
    op.execute(
        leads.update()
        .where(leads.c.status.in_(['INVALID', 'SENT_TO_CLINIC']))
        .values(nurture_completed=True, nurture_next_at=None)
    )

    if has_operator_status:
        # SQLite cannot drop columns in place; batch mode rebuilds the table there.
        with op.batch_alter_table('leads') as batch_op:
            batch_op.drop_column('operator_status')


def downgrade() -> None:
    """Downgrade schema."""
    pass
