"""Initial schema: materials, products with BOM, stock-ins, sales, capital

Revision ID: r0001_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. materials (stored stock, optimistic version_id)
2. products and product_bom_items (bill of materials per product)
3. stock_ins (purchase audit rows)
4. sales and sale_lines (receipt snapshots)
5. document_sequences (atomic receipt counter)
6. capital_entries
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. MATERIALS
    # ==========================================================================
    op.create_table('materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('stock', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Numeric(precision=14, scale=3), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_restocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_materials'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('materials', schema=None) as batch_op:
        batch_op.create_index('ix_materials_name', ['name'], unique=False)
        batch_op.create_index('ix_materials_unit', ['unit'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS + BOM
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)
        batch_op.create_index('ix_products_active_category', ['is_active', 'category'], unique=False)

    op.create_table('product_bom_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        # No FK: a deleted material surfaces as NotFound at checkout
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_product_bom_items_product_id_products', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_product_bom_items'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_bom_items', schema=None) as batch_op:
        batch_op.create_index('ix_bom_product_position', ['product_id', 'position'], unique=False)
        batch_op.create_index('ix_product_bom_items_material_id', ['material_id'], unique=False)

    # ==========================================================================
    # 3. STOCK-INS
    # ==========================================================================
    op.create_table('stock_ins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('material_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('new_stock', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_stock_ins'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_ins', schema=None) as batch_op:
        batch_op.create_index('ix_stock_ins_material_created', ['material_id', 'created_at'], unique=False)
        batch_op.create_index('ix_stock_ins_created_at', ['created_at'], unique=False)

    # ==========================================================================
    # 4. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=32), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('tax', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('service_charge', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('cash_tendered', sa.Integer(), nullable=True),
        sa.Column('change_due', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('customer_note', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='COMPLETED'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.UniqueConstraint('receipt_number', name='uq_sales_receipt_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_created_payment', ['created_at', 'payment_method'], unique=False)
        batch_op.create_index('ix_sales_created_at', ['created_at'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_sale_lines_sale_id_sales'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_lines'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_lines', schema=None) as batch_op:
        batch_op.create_index('ix_sale_lines_product', ['product_id'], unique=False)
        batch_op.create_index('ix_sale_lines_sale_id', ['sale_id'], unique=False)
        batch_op.create_index('ix_sale_lines_created_at', ['created_at'], unique=False)

    # ==========================================================================
    # 5. DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_document_sequences'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 6. CAPITAL ENTRIES
    # ==========================================================================
    op.create_table('capital_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=16), nullable=False, server_default='additional'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_capital_entries'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('capital_entries', schema=None) as batch_op:
        batch_op.create_index('ix_capital_entries_occurred_at', ['occurred_at'], unique=False)


def downgrade():
    op.drop_table('capital_entries')
    op.drop_table('document_sequences')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('stock_ins')
    op.drop_table('product_bom_items')
    op.drop_table('products')
    op.drop_table('materials')
