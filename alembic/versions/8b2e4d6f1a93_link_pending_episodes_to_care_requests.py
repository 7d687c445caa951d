"""Link pending_episodes to care_requests

Revision ID: 8b2e4d6f1a93
Revises: 3f9a1c7e2d40
Create Date: 2026-10-02 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e4d6f1a93'
down_revision: Union[str, None] = '3f9a1c7e2d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Name matching stays as the fallback for rows booked before this link
    with op.batch_alter_table('pending_episodes') as batch:
        batch.add_column(sa.Column('care_request_id', sa.Text(), nullable=True))
        batch.create_foreign_key(
            'fk_pending_episodes_care_request_id', 'care_requests',
            ['care_request_id'], ['id'],
        )
        batch.create_index('ix_pending_episodes_care_request_id', ['care_request_id'])


def downgrade() -> None:
    with op.batch_alter_table('pending_episodes') as batch:
        batch.drop_index('ix_pending_episodes_care_request_id')
        batch.drop_constraint('fk_pending_episodes_care_request_id', type_='foreignkey')
        batch.drop_column('care_request_id')
