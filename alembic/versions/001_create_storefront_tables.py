"""Create storefront tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    ]


def upgrade() -> None:
    """Create identity, catalog, chat, moderation and site tables."""
    # Identity
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True, unique=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('avatar_url', sa.String(1000), nullable=True),
        sa.Column('city_ids', postgresql.JSONB, nullable=False, server_default='[]'),
        *_timestamps(),
    )
    op.create_table(
        'admins',
        sa.Column('user_id', sa.String(36),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_table(
        'sessions',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'otp_challenges',
        sa.Column('identifier', sa.String(255), primary_key=True),
        sa.Column('code_hash', sa.String(64), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Catalog
    op.create_table(
        'facet_terms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('kind', sa.String(30), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hex', sa.String(7), nullable=True),
        sa.UniqueConstraint('kind', 'name', name='uq_facet_terms_kind_name'),
    )
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_code', sa.String(20), nullable=False, unique=True),
        sa.Column('owner_user_id', sa.String(36),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('original_price', sa.Integer(), nullable=True),
        sa.Column('images', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('primary_image_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(30), nullable=False, server_default='draft', index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('listing_status', sa.String(50), nullable=False, server_default='Paid'),
        sa.Column('admin_note', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        'product_facets',
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('term_id', sa.String(36),
                  sa.ForeignKey('facet_terms.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('kind', sa.String(30), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('product_id', 'term_id'),
    )
    op.create_table(
        'code_sequences',
        sa.Column('name', sa.String(20), primary_key=True),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_table(
        'product_views',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_ref', sa.String(36), nullable=False, index=True),
        sa.Column('viewed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_table(
        'product_impressions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('viewer_id', sa.String(100), nullable=False, index=True),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('seen_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Impression dedupe lookup
    op.create_index(
        'ix_product_impressions_product_viewer_seen',
        'product_impressions',
        ['product_id', 'viewer_id', 'seen_at'],
    )

    op.create_table(
        'wishlist',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_wishlist_user_product'),
    )

    # Rentals and chats
    op.create_table(
        'inquiries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('owner_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('renter_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        *_timestamps(),
    )
    op.create_table(
        'chats',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('inquiry_id', sa.String(36),
                  sa.ForeignKey('inquiries.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_table(
        'messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('chat_id', sa.String(36),
                  sa.ForeignKey('chats.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sender_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False, server_default=''),
        sa.Column('media_url', sa.String(1000), nullable=True),
        sa.Column('media_type', sa.String(20), nullable=True),
        sa.Column('reply_to_message_id', sa.String(36),
                  sa.ForeignKey('messages.id', ondelete='SET NULL'), nullable=True),
        sa.Column('client_id', sa.String(64), nullable=True),
        sa.Column('is_delivered', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()'), index=True),
        sa.UniqueConstraint('chat_id', 'sender_user_id', 'client_id', name='uq_messages_client_id'),
    )

    # Moderation
    op.create_table(
        'reports',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('chat_id', sa.String(36),
                  sa.ForeignKey('chats.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('reporter_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reported_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('reason', sa.String(50), nullable=False),
        sa.Column('details', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='new', index=True),
        sa.Column('resolution_note', sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Site content
    op.create_table(
        'hero_slides',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('subtitle', sa.String(500), nullable=True),
        sa.Column('image_url', sa.String(1000), nullable=False),
        sa.Column('link_url', sa.String(1000), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
    )
    op.create_table(
        'website_settings',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.String(500), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Idempotency responses table
    op.create_table(
        'idempotency_responses',
        sa.Column('idempotency_key', sa.String(100), nullable=False),
        sa.Column('scope', sa.String(36), nullable=False),
        sa.Column('endpoint', sa.String(200), nullable=False),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('response_status', sa.Integer(), nullable=False),
        sa.Column('response_body', postgresql.JSONB, nullable=False),
        sa.Column('response_headers', postgresql.JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('request_hash', sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint('idempotency_key', 'scope', 'endpoint', 'method'),
    )

    # Expiration cleanup
    op.create_index(
        'ix_idempotency_responses_expires_at',
        'idempotency_responses',
        ['expires_at'],
    )


def downgrade() -> None:
    """Drop all storefront tables."""
    op.drop_table('idempotency_responses')
    op.drop_table('website_settings')
    op.drop_table('hero_slides')
    op.drop_table('reports')
    op.drop_table('messages')
    op.drop_table('chats')
    op.drop_table('inquiries')
    op.drop_table('wishlist')
    op.drop_table('product_impressions')
    op.drop_table('product_views')
    op.drop_table('code_sequences')
    op.drop_table('product_facets')
    op.drop_table('products')
    op.drop_table('facet_terms')
    op.drop_table('otp_challenges')
    op.drop_table('sessions')
    op.drop_table('admins')
    op.drop_table('users')
