"""initial volunteersync schema

Revision ID: 0001_initial_volunteersync_schema
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_volunteersync_schema'
down_revision = None
branch_labels = None
depends_on = None

user_roles = sa.Enum('volunteer', 'organizer', 'admin', name='userroles')
approval_status = sa.Enum('pending', 'approved', 'rejected', name='approvalstatus')
signup_status = sa.Enum('registered', 'canceled', name='signupstatus')
attendance_status = sa.Enum('completed', 'no_show', 'excused', name='attendancestatus')
notification_channel = sa.Enum('email', 'in_app', name='notificationchannel')
notification_status = sa.Enum('pending', 'sent', 'failed', name='notificationstatus')


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # approved_by -> users is added once users exists
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('contact_email', sa.String(length=100), nullable=False),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('approval_status', approval_status, nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_organizations'),
        sa.UniqueConstraint('name', name='uq_organizations_name'),
    )
    op.create_index(
        'ix_organizations_approval_status', 'organizations', ['approval_status']
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('role', user_roles, nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ['organization_id'],
            ['organizations.id'],
            name='fk_users_organization_id_organizations',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_foreign_key(
        'fk_organizations_approved_by_users',
        'organizations',
        'users',
        ['approved_by'],
        ['id'],
        ondelete='SET NULL',
    )

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('event_time', sa.Time(), nullable=False),
        sa.Column('event_length_hours', sa.Integer(), nullable=False),
        sa.Column('location_name', sa.String(length=100), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('num_needed', sa.Integer(), nullable=False),
        sa.Column('num_signed_up', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ['organization_id'],
            ['organizations.id'],
            name='fk_events_organization_id_organizations',
        ),
        sa.ForeignKeyConstraint(
            ['created_by'],
            ['users.id'],
            name='fk_events_created_by_users',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_events'),
        sa.UniqueConstraint(
            'organization_id',
            'event_date',
            'event_time',
            'location_name',
            'title',
            name='uq_events_organization_slot',
        ),
    )
    op.create_index('ix_events_organization_id', 'events', ['organization_id'])
    op.create_index('ix_events_event_date', 'events', ['event_date'])

    op.create_table(
        'signups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('signup_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', signup_status, nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'], name='fk_signups_user_id_users', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['event_id'],
            ['events.id'],
            name='fk_signups_event_id_events',
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_signups'),
        sa.UniqueConstraint('user_id', 'event_id', name='uq_signups_user_event'),
    )
    op.create_index('ix_signups_event_id', 'signups', ['event_id'])

    op.create_table(
        'event_attendance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('signup_id', sa.Integer(), nullable=False),
        sa.Column('marked_by', sa.Integer(), nullable=True),
        sa.Column('marked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hours', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('status', attendance_status, nullable=False),
        sa.ForeignKeyConstraint(
            ['signup_id'],
            ['signups.id'],
            name='fk_event_attendance_signup_id_signups',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['marked_by'],
            ['users.id'],
            name='fk_event_attendance_marked_by_users',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_event_attendance'),
        sa.UniqueConstraint('signup_id', name='uq_event_attendance_signup_id'),
    )
    op.create_index(
        'ix_event_attendance_marked_by', 'event_attendance', ['marked_by']
    )

    op.create_table(
        'certificates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('signup_id', sa.Integer(), nullable=False),
        sa.Column('certificate_uid', sa.CHAR(length=12), nullable=False),
        sa.Column('verification_hash', sa.CHAR(length=64), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('signed_by', sa.Integer(), nullable=True),
        sa.Column('pdf_path', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(
            ['signup_id'],
            ['signups.id'],
            name='fk_certificates_signup_id_signups',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['signed_by'],
            ['users.id'],
            name='fk_certificates_signed_by_users',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_certificates'),
        sa.UniqueConstraint('signup_id', name='uq_certificates_signup_id'),
        sa.UniqueConstraint('certificate_uid', name='uq_certificates_certificate_uid'),
        sa.UniqueConstraint(
            'verification_hash', name='uq_certificates_verification_hash'
        ),
    )
    op.create_index('ix_certificates_signed_by', 'certificates', ['signed_by'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('channel', notification_channel, nullable=False),
        sa.Column('subject', sa.String(length=150), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('related_event_id', sa.Integer(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', notification_status, nullable=False),
        sa.Column('error_message', sa.String(length=500), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(
            ['user_id'],
            ['users.id'],
            name='fk_notifications_user_id_users',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['related_event_id'],
            ['events.id'],
            name='fk_notifications_related_event_id_events',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_notifications'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index(
        'ix_notifications_related_event_id', 'notifications', ['related_event_id']
    )
    op.create_index('ix_notifications_status', 'notifications', ['status'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=30), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_audit_log'),
    )
    op.create_index('ix_audit_log_occurred_at', 'audit_log', ['occurred_at'])
    op.create_index('ix_audit_log_actor_user_id', 'audit_log', ['actor_user_id'])
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('notifications')
    op.drop_table('certificates')
    op.drop_table('event_attendance')
    op.drop_table('signups')
    op.drop_table('events')
    op.drop_constraint(
        'fk_organizations_approved_by_users', 'organizations', type_='foreignkey'
    )
    op.drop_table('users')
    op.drop_table('organizations')

    bind = op.get_bind()
    for enum in (
        notification_status,
        notification_channel,
        attendance_status,
        signup_status,
        approval_status,
        user_roles,
    ):
        enum.drop(bind, checkfirst=True)
