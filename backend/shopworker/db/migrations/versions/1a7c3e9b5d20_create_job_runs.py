"""create job_runs ledger table

Revision ID: 1a7c3e9b5d20
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9b5d20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'job_runs',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('job_path', sa.String(length=255), nullable=False),
        sa.Column('shop_domain', sa.String(length=255), nullable=True),
        sa.Column('topic', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), server_default=sa.text("'queued'"), nullable=False),
        sa.Column('is_large_payload', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('payload_key', sa.String(length=255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_job_runs')),
    )
    op.create_index('ix_job_runs_job_path_created_at', 'job_runs', ['job_path', 'created_at'], unique=False)
    op.create_index('ix_job_runs_status', 'job_runs', ['status'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_job_runs_status', table_name='job_runs')
    op.drop_index('ix_job_runs_job_path_created_at', table_name='job_runs')
    op.drop_table('job_runs')
