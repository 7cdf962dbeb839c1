"""
Alembic migration: Initial bookstore schema.

Creates users, books, orders and order_items. Stock is guarded by a check
constraint so no write path can drive it negative; order items restrict
deletion of the books they reference.

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Record creation timestamp',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Record last update timestamp',
        ),
    ]


def upgrade() -> None:
    """Create the bookstore tables, indexes and constraints."""
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, comment='Display name'),
        sa.Column(
            'email',
            sa.String(length=255),
            nullable=False,
            comment='User email address (unique, lower-cased)',
        ),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column(
            'role',
            sa.String(length=20),
            nullable=False,
            server_default='CUSTOMER',
            comment='User role for access control',
        ),
        *_timestamps(),
        sa.CheckConstraint('length(email) >= 3', name='ck_users_email_min_length'),
        sa.CheckConstraint('length(name) >= 1', name='ck_users_name_min_length'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'books',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('authors', postgresql.JSONB(), nullable=False, comment='Ordered list of author names'),
        sa.Column('genre', sa.String(length=100), nullable=False),
        sa.Column('isbn', sa.String(length=20), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('isbn', name='uq_books_isbn'),
        sa.CheckConstraint('price >= 0', name='ck_books_price_non_negative'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_books_stock_quantity_non_negative'),
    )
    op.create_index('ix_books_title', 'books', ['title'])
    op.create_index('ix_books_genre', 'books', ['genre'])
    op.create_index('ix_books_genre_title', 'books', ['genre', 'title'])

    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('order_status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_price >= 0', name='ck_orders_total_price_non_negative'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'book_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('books.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
        sa.CheckConstraint('subtotal >= 0', name='ck_order_items_subtotal_non_negative'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_book_id', 'order_items', ['book_id'])


def downgrade() -> None:
    """Drop all bookstore tables."""
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('books')
    op.drop_table('users')
