"""initial flood response schema

Revision ID: 20261018_initial_schema
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '20261018_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

TZ = sa.DateTime(timezone=True)


def upgrade():
    conn = op.get_bind()
    existing = set(inspect(conn).get_table_names())

    # tables created by create_all() on an earlier boot are left alone
    if 'users' not in existing:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('hashed_password', sa.String(), nullable=False),
            sa.Column('created_at', TZ, nullable=False),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'evacuation_centers' not in existing:
        op.create_table(
            'evacuation_centers',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('address', sa.String(), nullable=False),
            sa.Column('location_lat', sa.Float(), nullable=True),
            sa.Column('location_lng', sa.Float(), nullable=True),
            sa.Column('max_capacity', sa.Integer(), nullable=False),
            sa.Column('current_occupancy', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('supplies_status', sa.String(), nullable=False),
            sa.Column('assigned_official_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('created_at', TZ, nullable=False),
            sa.Column('updated_at', TZ, nullable=False),
        )

    if 'profiles' not in existing:
        op.create_table(
            'profiles',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('phone_number', sa.String(), nullable=True),
            sa.Column('address', sa.String(), nullable=True),
            sa.Column('barangay_zone', sa.String(), nullable=True),
            sa.Column('last_known_lat', sa.Float(), nullable=True),
            sa.Column('last_known_lng', sa.Float(), nullable=True),
            sa.Column('last_active_at', TZ, nullable=True),
            sa.Column('created_at', TZ, nullable=False),
            sa.Column('updated_at', TZ, nullable=False),
        )

    if 'user_roles' not in existing:
        op.create_table(
            'user_roles',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('assigned_zone', sa.String(), nullable=True),
            sa.Column('assigned_evacuation_center_id', sa.Integer(),
                      sa.ForeignKey('evacuation_centers.id', ondelete='SET NULL'), nullable=True),
            sa.Column('created_at', TZ, nullable=False),
        )

    if 'rescue_requests' not in existing:
        op.create_table(
            'rescue_requests',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('requester_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('severity', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('is_quick_sos', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('household_count', sa.Integer(), nullable=False),
            sa.Column('special_needs', sa.JSON(), nullable=True),
            sa.Column('situation_description', sa.Text(), nullable=True),
            sa.Column('location_lat', sa.Float(), nullable=True),
            sa.Column('location_lng', sa.Float(), nullable=True),
            sa.Column('location_address', sa.String(), nullable=True),
            sa.Column('assigned_rescuer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('priority_score', sa.Integer(), nullable=False),
            sa.Column('completion_notes', sa.Text(), nullable=True),
            sa.Column('created_at', TZ, nullable=False),
            sa.Column('updated_at', TZ, nullable=False),
            sa.Column('completed_at', TZ, nullable=True),
        )
        op.create_index('ix_rescue_requests_status', 'rescue_requests', ['status'])
        op.create_index('ix_rescue_requests_requester_id', 'rescue_requests', ['requester_id'])
        op.create_index('ix_rescue_requests_assigned_rescuer_id', 'rescue_requests', ['assigned_rescuer_id'])

    if 'evacuees' not in existing:
        op.create_table(
            'evacuees',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('family_name', sa.String(), nullable=False),
            sa.Column('adults_count', sa.Integer(), nullable=False),
            sa.Column('children_count', sa.Integer(), nullable=False),
            sa.Column('home_address', sa.String(), nullable=True),
            sa.Column('contact_number', sa.String(), nullable=True),
            sa.Column('special_needs', sa.JSON(), nullable=True),
            sa.Column('evacuation_center_id', sa.Integer(),
                      sa.ForeignKey('evacuation_centers.id', ondelete='SET NULL'), nullable=True),
            sa.Column('registered_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('checked_in_at', TZ, nullable=False),
            sa.Column('checked_out_at', TZ, nullable=True),
        )
        op.create_index('ix_evacuees_evacuation_center_id', 'evacuees', ['evacuation_center_id'])

    if 'weather_alerts' not in existing:
        op.create_table(
            'weather_alerts',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('priority', sa.String(), nullable=False),
            sa.Column('target_zones', sa.JSON(), nullable=True),
            sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('expires_at', TZ, nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', TZ, nullable=False),
        )

    if 'weather_forecast' not in existing:
        op.create_table(
            'weather_forecast',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('forecast_date', sa.Date(), nullable=False, unique=True),
            sa.Column('temperature_high', sa.Float(), nullable=True),
            sa.Column('temperature_low', sa.Float(), nullable=True),
            sa.Column('condition', sa.String(), nullable=False),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('humidity', sa.Integer(), nullable=True),
            sa.Column('wind_speed', sa.Float(), nullable=True),
            sa.Column('precipitation_chance', sa.Integer(), nullable=True),
            sa.Column('icon_code', sa.String(), nullable=True),
            sa.Column('updated_at', TZ, nullable=False),
        )

    if 'rescuer_equipment' not in existing:
        op.create_table(
            'rescuer_equipment',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('rescuer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('equipment_name', sa.String(), nullable=False),
            sa.Column('quantity', sa.Integer(), nullable=False),
            sa.Column('condition', sa.String(), nullable=False),
            sa.Column('last_updated', TZ, nullable=False),
        )
        op.create_index('ix_rescuer_equipment_rescuer_id', 'rescuer_equipment', ['rescuer_id'])

    if 'flood_zones' not in existing:
        op.create_table(
            'flood_zones',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('zone_name', sa.String(), nullable=False),
            sa.Column('risk_level', sa.String(), nullable=False),
            sa.Column('current_water_level', sa.Float(), nullable=False),
            sa.Column('last_reading_at', TZ, nullable=True),
            sa.Column('polygon_coordinates', sa.JSON(), nullable=True),
        )


def downgrade():
    conn = op.get_bind()
    existing = set(inspect(conn).get_table_names())
    for table in ('flood_zones', 'rescuer_equipment', 'weather_forecast', 'weather_alerts', 'evacuees',
                  'rescue_requests', 'user_roles', 'profiles', 'evacuation_centers', 'users'):
        if table in existing:
            op.drop_table(table)
