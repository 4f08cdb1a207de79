"""Create user_account table

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Read-only uploader summary maintained by the authentication provider.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create user_account table."""
    op.create_table(
        'user_account',
        sa.Column('id', sa.String(128), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("role IN ('PATIENT', 'DOCTOR', 'STAFF')", name='ck_user_account_role'),
    )


def downgrade():
    """Drop user_account table."""
    op.drop_table('user_account')
