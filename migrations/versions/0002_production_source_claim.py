"""claim table making batch formation idempotent per source

Revision ID: 0002_production_source_claim
Revises: 0001_production_inventory
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_production_source_claim'
down_revision = '0001_production_inventory'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'production_source_claim',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=False),
        sa.Column('source_type', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('store_id', 'source_type', 'source_id', name='uq_production_source_claim'),
    )

    # Sources formed before this revision keep their claim.
    op.execute(
        "INSERT INTO production_source_claim (tenant_id, store_id, source_type, source_id, created_at) "
        "SELECT MIN(tenant_id), store_id, source_type, source_id, MIN(created_at) "
        "FROM production_batch GROUP BY store_id, source_type, source_id"
    )


def downgrade():
    op.drop_table('production_source_claim')
