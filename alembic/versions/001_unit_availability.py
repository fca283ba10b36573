"""Create unit_availability and property_units tables

Revision ID: 001_unit_availability
Revises:
Create Date: 2026-10-19

Adds:
- unit_availability: sparse per-day status exceptions, unique per (unit_id, date)
- property_units: read-only unit catalog used to scope grids and counts
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_unit_availability'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'unit_availability',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('unit_id', sa.String(36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('maintenance_type', sa.String(100), nullable=True),
        sa.Column('updated_by', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('unit_id', 'date', name='uq_unit_availability_unit_date'),
        sa.CheckConstraint(
            "status IN ('available', 'booked', 'maintenance', 'out_of_service', 'reserved')",
            name='ck_unit_availability_status',
        ),
    )
    op.create_index('ix_unit_availability_date', 'unit_availability', ['date'])
    op.create_index('ix_unit_availability_date_status', 'unit_availability', ['date', 'status'])

    op.create_table(
        'property_units',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('property_id', sa.String(36), nullable=False),
        sa.Column('unit_number', sa.String(50), nullable=False),
        sa.Column('floor_number', sa.Integer(), nullable=True),
        sa.Column('unit_type', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_property_units_property', 'property_units', ['property_id', 'unit_number'])


def downgrade() -> None:
    op.drop_index('ix_property_units_property', 'property_units')
    op.drop_table('property_units')
    op.drop_index('ix_unit_availability_date_status', 'unit_availability')
    op.drop_index('ix_unit_availability_date', 'unit_availability')
    op.drop_table('unit_availability')
