"""Initial schema: users, applications, logbooks, files, OTP sessions, imports, audit

Revision ID: stajkontrol_v1
Revises:
Create Date: 2026-10-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'stajkontrol_v1'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('must_change_password', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('national_id', sa.String(length=11), nullable=True),
        sa.Column('student_number', sa.String(length=20), nullable=True),
        sa.Column('faculty', sa.String(length=255), nullable=True),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('class_year', sa.Integer(), nullable=True),
        sa.Column('advisor_id', sa.Uuid(), nullable=True),
        sa.Column('is_dual_major', sa.Boolean(), nullable=False),
        sa.Column('dual_major_department', sa.String(length=255), nullable=True),
        sa.Column('dual_major_advisor_id', sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(['advisor_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['dual_major_advisor_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_national_id', 'users', ['national_id'], unique=True)
    op.create_index('ix_users_student_number', 'users', ['student_number'], unique=True)
    op.create_index('ix_users_advisor_id', 'users', ['advisor_id'])
    op.create_index('ix_users_dual_major_advisor_id', 'users', ['dual_major_advisor_id'])

    op.create_table(
        'applications',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('company_address', sa.String(length=500), nullable=False),
        sa.Column('company_phone', sa.String(length=20), nullable=False),
        sa.Column('company_email', sa.String(length=255), nullable=False),
        sa.Column('authorized_person_name', sa.String(length=255), nullable=False),
        sa.Column('authorized_person_title', sa.String(length=255), nullable=True),
        sa.Column('internship_type', sa.String(length=32), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('decided_by', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('start_date < end_date', name='ck_application_date_range'),
        sa.CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL)",
            name='ck_application_rejection_reason',
        ),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_applications_id', 'applications', ['id'])
    op.create_index('ix_applications_student_id', 'applications', ['student_id'])
    op.create_index('ix_applications_company_email', 'applications', ['company_email'])
    op.create_index('ix_applications_status', 'applications', ['status'])

    op.create_table(
        'logbooks',
        *_base_columns(),
        sa.Column('application_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_logbooks_id', 'logbooks', ['id'])
    op.create_index('ix_logbooks_application_id', 'logbooks', ['application_id'], unique=True)
    op.create_index('ix_logbooks_status', 'logbooks', ['status'])

    op.create_table(
        'uploaded_files',
        *_base_columns(),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('storage_path', sa.String(length=500), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
        sa.Column('application_id', sa.Uuid(), nullable=True),
        sa.Column('logbook_id', sa.Uuid(), nullable=True),
        sa.CheckConstraint(
            '(application_id IS NULL) <> (logbook_id IS NULL)', name='ck_uploaded_file_single_owner'
        ),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['logbook_id'], ['logbooks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_path'),
        sa.UniqueConstraint('application_id', 'kind', name='uq_uploaded_file_application_kind'),
    )
    op.create_index('ix_uploaded_files_id', 'uploaded_files', ['id'])
    op.create_index('ix_uploaded_files_application_id', 'uploaded_files', ['application_id'])
    op.create_index('ix_uploaded_files_logbook_id', 'uploaded_files', ['logbook_id'], unique=True)

    op.create_table(
        'company_otp_sessions',
        *_base_columns(),
        sa.Column('company_email', sa.String(length=255), nullable=False),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('failed_attempts', sa.Integer(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(), nullable=True),
        sa.Column('session_expires_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_company_otp_sessions_id', 'company_otp_sessions', ['id'])
    op.create_index('ix_company_otp_sessions_company_email', 'company_otp_sessions', ['company_email'])

    op.create_table(
        'bulk_import_jobs',
        *_base_columns(),
        sa.Column('job_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=500), nullable=True),
        sa.Column('total_rows', sa.Integer(), nullable=False),
        sa.Column('processed_rows', sa.Integer(), nullable=False),
        sa.Column('success_count', sa.Integer(), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False),
        sa.Column('skipped_count', sa.Integer(), nullable=False),
        sa.Column('cancel_requested', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bulk_import_jobs_id', 'bulk_import_jobs', ['id'])
    op.create_index('ix_bulk_import_jobs_status', 'bulk_import_jobs', ['status'])

    op.create_table(
        'bulk_import_rows',
        *_base_columns(),
        sa.Column('job_id', sa.Uuid(), nullable=False),
        sa.Column('row_number', sa.Integer(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('identifier', sa.String(length=255), nullable=True),
        sa.Column('message', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['job_id'], ['bulk_import_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bulk_import_rows_id', 'bulk_import_rows', ['id'])
    op.create_index('ix_bulk_import_rows_job_id', 'bulk_import_rows', ['job_id'])

    op.create_table(
        'audit_logs',
        *_base_columns(),
        sa.Column('actor_user_id', sa.Uuid(), nullable=True),
        sa.Column('actor_email', sa.String(length=255), nullable=True),
        sa.Column('actor_role', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('previous_status', sa.String(length=32), nullable=True),
        sa.Column('new_status', sa.String(length=32), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('bulk_import_rows')
    op.drop_table('bulk_import_jobs')
    op.drop_table('company_otp_sessions')
    op.drop_table('uploaded_files')
    op.drop_table('logbooks')
    op.drop_table('applications')
    op.drop_table('users')
