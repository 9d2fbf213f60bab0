"""add started_at to question; attempts and time_taken_ms to answer

Revision ID: 9e4a61c2f5b8
Revises: 3b7d0c9a1e42
Create Date: 2026-09-16 18:30:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9e4a61c2f5b8'
down_revision = '3b7d0c9a1e42'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    question_cols = {c['name'] for c in insp.get_columns('question')}
    with op.batch_alter_table('question') as batch_op:
        if 'started_at' not in question_cols:
            batch_op.add_column(sa.Column('started_at', sa.DateTime(), nullable=True))

    answer_cols = {c['name'] for c in insp.get_columns('answer')}
    with op.batch_alter_table('answer') as batch_op:
        if 'attempts' not in answer_cols:
            batch_op.add_column(sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'))
        if 'time_taken_ms' not in answer_cols:
            batch_op.add_column(sa.Column('time_taken_ms', sa.Integer(), nullable=True))


def downgrade():
    with op.batch_alter_table('answer') as batch_op:
        batch_op.drop_column('time_taken_ms')
        batch_op.drop_column('attempts')
    with op.batch_alter_table('question') as batch_op:
        batch_op.drop_column('started_at')
