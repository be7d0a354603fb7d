"""
Initial Actify schema.

Tables:
- identity and tenancy: users, organizations (facilities), organization_memberships
- audit_logs, notifications, user_notification_preferences
- residents, activity templates/series/instances, attendance
- progress notes and note templates, daily 1:1 queue
- resident council meetings and items
- budget/stock items, categories, expenses and sales
- volunteers and visits
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'actify_initial_20260101'
down_revision = None
branch_labels = None
depends_on = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _org_fk(nullable=False):
    return sa.Column('organization_id', _uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                     nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('is_superadmin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auth_provider', sa.String(), nullable=True),
        sa.Column('external_subject', sa.String(), nullable=True),
        sa.Column('notification_settings', postgresql.JSONB(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'organizations',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('slug', sa.String(), nullable=True, unique=True),
        sa.Column('timezone', sa.String(100), nullable=False, server_default='America/New_York'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('settings', postgresql.JSONB(), nullable=True),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )

    op.create_table(
        'organization_memberships',
        sa.Column('organization_id', _uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('can_read', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('can_write', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at'),
        sa.CheckConstraint("role in ('owner','admin','editor','viewer')", name='ck_org_memberships_role'),
    )
    op.create_index('idx_org_memberships_user_id', 'organization_memberships', ['user_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('organization_id', _uuid(), sa.ForeignKey('organizations.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('actor_user_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action_type', sa.Text(), nullable=False),
        sa.Column('target_type', sa.Text(), nullable=True),
        sa.Column('target_id', _uuid(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_audit_logs_organization_id_created_at', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('ix_audit_logs_actor_user_id_created_at', 'audit_logs', ['actor_user_id', 'created_at'])
    op.create_index('ix_audit_logs_action_type', 'audit_logs', ['action_type'])

    op.create_table(
        'user_notification_preferences',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('in_app_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )
    op.create_index('idx_user_notification_preferences_user_id', 'user_notification_preferences', ['user_id'])
    op.create_index('idx_user_notification_preferences_unique', 'user_notification_preferences',
                    ['user_id', 'event_type'], unique=True)

    op.create_table(
        'notifications',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _org_fk(nullable=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('action_text', sa.String(100), nullable=True),
        sa.Column('dedupe_key', sa.String(255), nullable=True, unique=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('read_at'),
        _ts('created_at', nullable=False),
        _ts('expires_at'),
    )
    op.create_index('idx_notifications_user_id_created_at', 'notifications', ['user_id', 'created_at'])
    op.create_index('idx_notifications_user_id_is_read', 'notifications', ['user_id', 'is_read'])
    op.create_index('idx_notifications_expires_at', 'notifications', ['expires_at'])
    op.create_index('idx_notifications_event_type', 'notifications', ['event_type'])

    op.create_table(
        'residents',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('first_name', sa.String(120), nullable=False),
        sa.Column('last_name', sa.String(120), nullable=False),
        sa.Column('room', sa.String(40), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='ACTIVE'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('birth_date'),
        sa.Column('preferences', sa.Text(), nullable=True),
        sa.Column('safety_notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.Text(), nullable=True),
        sa.Column('follow_up_flag', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('last_one_on_one_at'),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_residents_organization_id_room', 'residents', ['organization_id', 'room'])
    op.create_index('idx_residents_organization_id_status', 'residents', ['organization_id', 'status'])

    op.create_table(
        'activity_templates',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('category', sa.String(80), nullable=False, server_default='General'),
        sa.Column('supplies', sa.Text(), nullable=True),
        sa.Column('setup_steps', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(20), nullable=False, server_default='Medium'),
        sa.Column('default_checklist', postgresql.JSONB(), nullable=True),
        sa.Column('adaptations', postgresql.JSONB(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_activity_templates_organization_id', 'activity_templates', ['organization_id'])

    op.create_table(
        'activity_series',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(200), nullable=False),
        _ts('dtstart', nullable=False),
        sa.Column('duration_min', sa.Integer(), nullable=False),
        sa.Column('rrule', sa.String(500), nullable=False),
        _ts('until'),
        sa.Column('timezone', sa.String(100), nullable=False, server_default='America/New_York'),
        sa.Column('location', sa.String(200), nullable=False),
        sa.Column('checklist', postgresql.JSONB(), nullable=True),
        sa.Column('adaptations', postgresql.JSONB(), nullable=True),
        sa.Column('exdates', postgresql.JSONB(), nullable=True),
        sa.Column('template_id', _uuid(), sa.ForeignKey('activity_templates.id', ondelete='SET NULL'),
                  nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )

    op.create_table(
        'activity_instances',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('series_id', _uuid(), sa.ForeignKey('activity_series.id', ondelete='SET NULL'), nullable=True),
        sa.Column('occurrence_key', sa.String(40), nullable=True),
        sa.Column('is_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('conflict_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('title', sa.String(200), nullable=False),
        _ts('start_at', nullable=False),
        _ts('end_at', nullable=False),
        sa.Column('location', sa.String(200), nullable=False),
        sa.Column('checklist', postgresql.JSONB(), nullable=True),
        sa.Column('adaptations_enabled', postgresql.JSONB(), nullable=True),
        sa.Column('template_id', _uuid(), sa.ForeignKey('activity_templates.id', ondelete='SET NULL'),
                  nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.UniqueConstraint('series_id', 'occurrence_key', name='uq_activity_instances_series_occurrence'),
    )
    op.create_index('idx_activity_instances_organization_id_start_at', 'activity_instances',
                    ['organization_id', 'start_at'])

    op.create_table(
        'attendance',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('activity_instance_id', _uuid(), sa.ForeignKey('activity_instances.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('resident_id', _uuid(), sa.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('barrier_reason', sa.String(40), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.UniqueConstraint('activity_instance_id', 'resident_id', name='uq_attendance_activity_resident'),
    )
    op.create_index('idx_attendance_resident_id', 'attendance', ['resident_id'])

    op.create_table(
        'progress_note_templates',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('quick_phrases', postgresql.JSONB(), nullable=True),
        sa.Column('body_template', sa.Text(), nullable=True),
        _ts('created_at'),
    )

    op.create_table(
        'progress_notes',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('resident_id', _uuid(), sa.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('activity_instance_id', _uuid(), sa.ForeignKey('activity_instances.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('participation_level', sa.String(20), nullable=False, server_default='MODERATE'),
        sa.Column('mood_affect', sa.String(20), nullable=False, server_default='CALM'),
        sa.Column('cues_required', sa.String(20), nullable=False, server_default='NONE'),
        sa.Column('response', sa.String(20), nullable=False, server_default='POSITIVE'),
        sa.Column('narrative', sa.Text(), nullable=False),
        sa.Column('follow_up', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_progress_notes_organization_id_created_at', 'progress_notes',
                    ['organization_id', 'created_at'])
    op.create_index('idx_progress_notes_resident_id_created_at', 'progress_notes', ['resident_id', 'created_at'])

    op.create_table(
        'daily_one_on_one_queue',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('resident_id', _uuid(), sa.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False),
        _ts('queue_date', nullable=False),
        sa.Column('queue_date_key', sa.String(10), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(200), nullable=False),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('pinned_for_date'),
        _ts('pinned_at'),
        _ts('completed_at'),
        _ts('skipped_at'),
        sa.Column('skip_reason', sa.String(40), nullable=True),
        sa.Column('queue_size', sa.Integer(), nullable=False, server_default='6'),
        _ts('created_at'),
        sa.UniqueConstraint('organization_id', 'queue_date_key', 'resident_id',
                            name='uq_one_on_one_queue_day_resident'),
    )
    op.create_index('idx_one_on_one_queue_organization_id_date', 'daily_one_on_one_queue',
                    ['organization_id', 'queue_date_key'])

    op.create_table(
        'resident_council_meetings',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        _ts('held_at', nullable=False),
        sa.Column('attendance_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_resident_council_meetings_organization_id_held_at', 'resident_council_meetings',
                    ['organization_id', 'held_at'])

    op.create_table(
        'resident_council_items',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('meeting_id', _uuid(), sa.ForeignKey('resident_council_meetings.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('category', sa.String(40), nullable=False),
        sa.Column('concern', sa.Text(), nullable=False),
        sa.Column('owner', sa.String(120), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='UNRESOLVED'),
        sa.Column('follow_up', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )

    op.create_table(
        'budget_stock_items',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(160), nullable=False),
        sa.Column('category', sa.String(80), nullable=False, server_default='Misc'),
        sa.Column('unit', sa.String(40), nullable=False, server_default='each'),
        sa.Column('on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('par_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reorder_point', sa.Integer(), nullable=True),
        sa.Column('cost_per_unit', sa.Float(), nullable=True),
        sa.Column('vendor', sa.String(160), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('idx_budget_stock_items_organization_id', 'budget_stock_items', ['organization_id'])

    op.create_table(
        'budget_stock_categories',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(80), nullable=False),
        sa.Column('monthly_limit', sa.Float(), nullable=False, server_default='0'),
        _ts('created_at'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_budget_stock_categories_name'),
    )

    op.create_table(
        'budget_stock_expenses',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        _ts('date', nullable=False),
        sa.Column('category', sa.String(80), nullable=False),
        sa.Column('category_id', _uuid(), sa.ForeignKey('budget_stock_categories.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('vendor', sa.String(160), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('linked_item_id', _uuid(), sa.ForeignKey('budget_stock_items.id', ondelete='SET NULL'),
                  nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_budget_stock_expenses_organization_id_date', 'budget_stock_expenses',
                    ['organization_id', 'date'])

    op.create_table(
        'budget_stock_sales',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        _ts('date', nullable=False),
        sa.Column('item_id', _uuid(), sa.ForeignKey('budget_stock_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('sell_price_per_unit', sa.Float(), nullable=False),
        sa.Column('revenue', sa.Float(), nullable=False),
        sa.Column('cost_basis', sa.Float(), nullable=False),
        sa.Column('profit', sa.Float(), nullable=False),
        sa.Column('resident_name', sa.String(160), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_budget_stock_sales_organization_id_date', 'budget_stock_sales',
                    ['organization_id', 'date'])

    op.create_table(
        'volunteers',
        sa.Column('id', _uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(160), nullable=False),
        sa.Column('phone', sa.String(40), nullable=True),
        sa.Column('requirements', postgresql.JSONB(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )

    op.create_table(
        'volunteer_visits',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('volunteer_id', _uuid(), sa.ForeignKey('volunteers.id', ondelete='CASCADE'), nullable=False),
        _ts('start_at', nullable=False),
        _ts('end_at'),
        sa.Column('assigned_location', sa.String(200), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('signed_in_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('signed_out_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at'),
    )
    op.create_index('idx_volunteer_visits_volunteer_id_start_at', 'volunteer_visits', ['volunteer_id', 'start_at'])


def downgrade() -> None:
    for table in (
        'volunteer_visits',
        'volunteers',
        'budget_stock_sales',
        'budget_stock_expenses',
        'budget_stock_categories',
        'budget_stock_items',
        'resident_council_items',
        'resident_council_meetings',
        'daily_one_on_one_queue',
        'progress_notes',
        'progress_note_templates',
        'attendance',
        'activity_instances',
        'activity_series',
        'activity_templates',
        'residents',
        'notifications',
        'user_notification_preferences',
        'audit_logs',
        'organization_memberships',
        'organizations',
        'users',
    ):
        op.drop_table(table)
