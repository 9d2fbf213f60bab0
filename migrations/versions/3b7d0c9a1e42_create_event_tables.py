"""create event, question, participant and answer tables

Revision ID: 3b7d0c9a1e42
Revises:
Create Date: 2026-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3b7d0c9a1e42'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'event',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('current_question_id', sa.Integer(), nullable=True),
        sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_event_code', 'event', ['code'], unique=True)

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('answer', sa.String(length=256), nullable=False),
        sa.Column('question_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['event.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'question_order', name='uq_question_event_order'),
    )
    op.create_index('ix_question_event_id', 'question', ['event_id'])

    # Circular reference: event -> question is added once both tables exist
    with op.batch_alter_table('event') as batch_op:
        batch_op.create_foreign_key(
            'fk_event_current_question_id', 'question', ['current_question_id'], ['id'], ondelete='SET NULL'
        )

    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['event.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'name', name='uq_participant_event_name'),
    )
    op.create_index('ix_participant_event_id', 'participant', ['event_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('participant_id', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('answered_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['question_id'], ['question.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['participant_id'], ['participant.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('question_id', 'participant_id', name='uq_answer_question_participant'),
        sa.UniqueConstraint('question_id', 'rank', name='uq_answer_question_rank'),
    )
    op.create_index('ix_answer_question_id', 'answer', ['question_id'])
    op.create_index('ix_answer_participant_id', 'answer', ['participant_id'])


def downgrade():
    op.drop_index('ix_answer_participant_id', table_name='answer')
    op.drop_index('ix_answer_question_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_participant_event_id', table_name='participant')
    op.drop_table('participant')
    with op.batch_alter_table('event') as batch_op:
        batch_op.drop_constraint('fk_event_current_question_id', type_='foreignkey')
    op.drop_index('ix_question_event_id', table_name='question')
    op.drop_table('question')
    op.drop_index('ix_event_code', table_name='event')
    op.drop_table('event')
