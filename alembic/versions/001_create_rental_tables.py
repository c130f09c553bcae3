"""Create equipment rental tables

Revision ID: 001_create_rental_tables
Revises:
Create Date: 2026-10-19

Note: Using IF NOT EXISTS pattern to make migration idempotent.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '001_create_rental_tables'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(conn, table_name):
    """Check if a table exists in the database."""
    result = conn.execute(text(
        "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :table_name)"
    ), {"table_name": table_name})
    return result.scalar()


def upgrade():
    """Create users, equipment, availability, rental request and credential tables."""
    conn = op.get_bind()

    if not table_exists(conn, 'api_users'):
        op.create_table(
            'api_users',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
            sa.Column('phone', sa.String(20), nullable=True),
            sa.Column('hashed_password', sa.String(255), nullable=False),
            sa.Column('first_name', sa.String(100)),
            sa.Column('last_name', sa.String(100)),
            sa.Column('role', sa.String(20), nullable=False, server_default='farmer'),
            sa.Column('is_active', sa.Boolean, server_default=sa.true()),
            sa.Column('is_superuser', sa.Boolean, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
        )

    if not table_exists(conn, 'equipment_categories'):
        op.create_table(
            'equipment_categories',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('name', sa.String(100), nullable=False, unique=True),
            sa.Column('description', sa.Text, nullable=True),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
        )

    if not table_exists(conn, 'equipment'):
        op.create_table(
            'equipment',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('name', sa.String(150), nullable=False),
            sa.Column('category_id', sa.Integer, sa.ForeignKey('equipment_categories.id'), nullable=False, index=True),
            sa.Column('description', sa.Text, nullable=True),
            sa.Column('daily_rate', sa.Numeric(10, 2), nullable=False),
            sa.Column('weekly_rate', sa.Numeric(10, 2), nullable=False),
            sa.Column('monthly_rate', sa.Numeric(10, 2), nullable=True),
            sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('security_deposit', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('contact_number', sa.String(20), nullable=True),
            sa.Column('specifications', sa.JSON, nullable=True),
            sa.Column('maintenance_notes', sa.Text, nullable=True),
            sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('current_status', sa.String(20), nullable=False, server_default='available'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
            sa.UniqueConstraint('category_id', 'name', name='uq_equipment_category_name'),
        )

    if not table_exists(conn, 'equipment_availability'):
        op.create_table(
            'equipment_availability',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('date', sa.Date, nullable=False),
            sa.Column('is_available', sa.Boolean, nullable=False),
            sa.Column('reason', sa.String(255), nullable=True),
            sa.Column('created_by', sa.Integer, sa.ForeignKey('api_users.id'), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
            sa.UniqueConstraint('equipment_id', 'date', name='uq_equipment_availability_date'),
        )

    if not table_exists(conn, 'equipment_rental_requests'):
        op.create_table(
            'equipment_rental_requests',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('farmer_id', sa.Integer, sa.ForeignKey('api_users.id'), nullable=False, index=True),
            sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id'), nullable=False, index=True),
            sa.Column('start_date', sa.Date, nullable=False),
            sa.Column('end_date', sa.Date, nullable=False),
            sa.Column('rental_duration_days', sa.Integer, nullable=False),
            sa.Column('machine_fee', sa.Numeric(10, 2), nullable=False),
            sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False),
            sa.Column('security_deposit', sa.Numeric(10, 2), nullable=False),
            sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('receiver_name', sa.String(150), nullable=False),
            sa.Column('receiver_phone', sa.String(20), nullable=False),
            sa.Column('delivery_address', sa.Text, nullable=False),
            sa.Column('delivery_latitude', sa.Float, nullable=True),
            sa.Column('delivery_longitude', sa.Float, nullable=True),
            sa.Column('additional_notes', sa.Text, nullable=True),
            sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
            sa.Column('admin_notes', sa.Text, nullable=True),
            sa.Column('rejection_reason', sa.Text, nullable=True),
            sa.Column('approved_by', sa.Integer, sa.ForeignKey('api_users.id'), nullable=True),
            sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('pickup_confirmed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('return_confirmed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('idempotency_key', sa.String(64), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint('farmer_id', 'idempotency_key', name='uq_rental_request_idempotency'),
            sa.CheckConstraint('end_date > start_date', name='ck_rental_request_window'),
        )

    if not table_exists(conn, 'equipment_occupancy'):
        op.create_table(
            'equipment_occupancy',
            sa.Column('id', sa.Integer, primary_key=True),
            sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id', ondelete='CASCADE'), nullable=False),
            sa.Column('day', sa.Date, nullable=False),
            sa.Column(
                'request_id', sa.Integer,
                sa.ForeignKey('equipment_rental_requests.id', ondelete='CASCADE'),
                nullable=False, index=True,
            ),
            sa.UniqueConstraint('equipment_id', 'day', name='uq_equipment_occupancy_day'),
        )

    if not table_exists(conn, 'rental_credentials'):
        op.create_table(
            'rental_credentials',
            sa.Column('id', sa.String(64), primary_key=True),
            sa.Column(
                'request_id', sa.Integer,
                sa.ForeignKey('equipment_rental_requests.id', ondelete='CASCADE'),
                nullable=False, index=True,
            ),
            sa.Column('equipment_id', sa.Integer, sa.ForeignKey('equipment.id'), nullable=False),
            sa.Column('purpose', sa.String(10), nullable=False),
            sa.Column('token_hash', sa.String(64), nullable=False),
            sa.Column('token_encrypted', sa.Text, nullable=False),
            sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        )


def downgrade():
    """Drop rental tables in dependency order."""
    op.drop_table('rental_credentials')
    op.drop_table('equipment_occupancy')
    op.drop_table('equipment_rental_requests')
    op.drop_table('equipment_availability')
    op.drop_table('equipment')
    op.drop_table('equipment_categories')
    op.drop_table('api_users')
