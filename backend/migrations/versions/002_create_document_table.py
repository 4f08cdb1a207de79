"""Create document table for the clinical document vault

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    """Create document table with soft delete and upload status."""
    op.create_table(
        'document',
        sa.Column('id', sa.String(64), nullable=False),

        # Ownership
        sa.Column('patient_id', sa.String(128), nullable=False),
        sa.Column('appointment_id', sa.String(128), nullable=True),
        sa.Column('uploader_id', sa.String(128), nullable=False),
        sa.Column('uploader_role', sa.String(16), nullable=False),

        # Classification
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),

        # File metadata (declared at upload time)
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('mime_type', sa.String(255), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),

        # Object storage key, never reused
        sa.Column('storage_key', sa.Text(), nullable=False),

        # Visibility and lifecycle
        sa.Column('is_shared_with_patient', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(16), nullable=False, server_default='PENDING'),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        # Constraints
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_key', name='uq_document_storage_key'),
        sa.CheckConstraint('file_size > 0', name='ck_document_file_size_positive'),
        sa.CheckConstraint("uploader_role IN ('PATIENT', 'DOCTOR', 'STAFF')", name='ck_document_uploader_role'),
        sa.CheckConstraint("status IN ('PENDING', 'ACTIVE', 'QUARANTINED')", name='ck_document_status'),
    )

    op.create_index('ix_document_patient_id', 'document', ['patient_id'])
    op.create_index('ix_document_appointment_id', 'document', ['appointment_id'])
    op.create_index('ix_document_uploader_id', 'document', ['uploader_id'])
    op.create_index('ix_document_patient_created', 'document', ['patient_id', 'created_at'])


def downgrade():
    """Drop document table."""
    op.drop_index('ix_document_patient_created', table_name='document')
    op.drop_index('ix_document_uploader_id', table_name='document')
    op.drop_index('ix_document_appointment_id', table_name='document')
    op.drop_index('ix_document_patient_id', table_name='document')
    op.drop_table('document')
