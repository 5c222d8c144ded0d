"""Schéma initial : signalements, rotations, inventaires

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

signalement_status = sa.Enum(
    'EN_ATTENTE', 'EN_COURS', 'A_DESTOCKER', 'A_VERIFIER', 'ECOULEMENT', 'DETRUIT',
    name='signalement_status',
)
urgency_tier = sa.Enum('low', 'medium', 'high', 'critical', name='urgency_tier')
inventaire_status = sa.Enum('EN_COURS', 'TERMINE', 'ARCHIVE', name='inventaire_status')


def upgrade() -> None:
    op.create_table(
        'signalements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=20), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('status', signalement_status, nullable=False),
        sa.Column('computed_urgency', urgency_tier, nullable=True),
        sa.Column('sell_through_probability', sa.Numeric(5, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='check_signalement_quantity_positive'),
        sa.CheckConstraint(
            'sell_through_probability IS NULL OR '
            '(sell_through_probability >= 0 AND sell_through_probability <= 100)',
            name='check_signalement_probability_range',
        ),
    )
    op.create_index('ix_signalements_id', 'signalements', ['id'])
    op.create_index('ix_signalements_product_code', 'signalements', ['product_code'])
    op.create_index('ix_signalements_expiration_date', 'signalements', ['expiration_date'])
    op.create_index('ix_signalements_status', 'signalements', ['status'])
    op.create_index('ix_signalements_computed_urgency', 'signalements', ['computed_urgency'])
    op.create_index('ix_signalements_created_at', 'signalements', ['created_at'])

    op.create_table(
        'product_rotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ean_code', sa.String(length=20), nullable=False),
        sa.Column('normalized_code', sa.String(length=20), nullable=False),
        sa.Column('monthly_rotation', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_purchase_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('monthly_rotation >= 0 AND monthly_rotation <= 1000', name='check_rotation_range'),
        sa.CheckConstraint(
            'unit_purchase_price IS NULL OR unit_purchase_price >= 0',
            name='check_rotation_price_positive',
        ),
    )
    op.create_index('ix_product_rotations_id', 'product_rotations', ['id'])
    op.create_index('ix_product_rotations_ean_code', 'product_rotations', ['ean_code'], unique=True)
    op.create_index('ix_product_rotations_normalized_code', 'product_rotations', ['normalized_code'], unique=True)

    op.create_table(
        'inventaires',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', inventaire_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventaires_id', 'inventaires', ['id'])
    op.create_index('ix_inventaires_status', 'inventaires', ['status'])
    op.create_index('ix_inventaires_created_at', 'inventaires', ['created_at'])

    op.create_table(
        'inventaire_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventaire_id', sa.Integer(), nullable=False),
        sa.Column('ean_code', sa.String(length=20), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['inventaire_id'], ['inventaires.id'], ondelete='CASCADE'),
        sa.CheckConstraint('quantity >= 1', name='check_inventaire_item_quantity_positive'),
    )
    op.create_index('ix_inventaire_items_id', 'inventaire_items', ['id'])
    op.create_index('ix_inventaire_items_inventaire_id', 'inventaire_items', ['inventaire_id'])
    op.create_index('ix_inventaire_items_ean_code', 'inventaire_items', ['ean_code'])


def downgrade() -> None:
    op.drop_table('inventaire_items')
    op.drop_table('inventaires')
    op.drop_table('product_rotations')
    op.drop_table('signalements')
    inventaire_status.drop(op.get_bind(), checkfirst=True)
    urgency_tier.drop(op.get_bind(), checkfirst=True)
    signalement_status.drop(op.get_bind(), checkfirst=True)
