"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('nickname', sa.String(), nullable=False),
        sa.Column('gender', sa.String(), nullable=False),
        sa.Column('contact_handle', sa.String(), nullable=True),
        sa.Column('push_token', sa.String(), nullable=True),
        sa.Column('has_welcome_coupon', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('free_reveals_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('withdrawn_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('free_reveals_count >= 0', name='ck_members_free_reveals_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_members_id'), 'members', ['id'], unique=False)
    op.create_index(op.f('ix_members_external_id'), 'members', ['external_id'], unique=True)

    op.create_table(
        'member_books',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('isbn', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('member_id', 'isbn', name='uq_member_books_member_isbn')
    )
    op.create_index(op.f('ix_member_books_id'), 'member_books', ['id'], unique=False)
    op.create_index(op.f('ix_member_books_member_id'), 'member_books', ['member_id'], unique=False)

    op.create_table(
        'dating_applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('batch_key', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('member_id', 'batch_key', name='uq_dating_applications_member_batch')
    )
    op.create_index(op.f('ix_dating_applications_id'), 'dating_applications', ['id'], unique=False)
    op.create_index('ix_dating_applications_member_created', 'dating_applications', ['member_id', 'created_at'], unique=False)

    op.create_table(
        'match_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('letter', sa.Text(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('sender_contact_snapshot', sa.String(), nullable=True),
        sa.Column('receiver_contact_snapshot', sa.String(), nullable=True),
        sa.Column('is_unlocked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('payment_transaction_id', sa.String(), nullable=True),
        sa.Column('unlock_claim', sa.String(), nullable=True),
        sa.Column('unlock_claimed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['sender_id'], ['members.id'], ),
        sa.ForeignKeyConstraint(['receiver_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_match_requests_id'), 'match_requests', ['id'], unique=False)
    op.create_index(op.f('ix_match_requests_sender_id'), 'match_requests', ['sender_id'], unique=False)
    op.create_index(op.f('ix_match_requests_receiver_id'), 'match_requests', ['receiver_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=True),
        sa.Column('sender_id', sa.Integer(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['recipient_id'], ['members.id'], ),
        sa.ForeignKeyConstraint(['match_id'], ['match_requests.id'], ),
        sa.ForeignKeyConstraint(['sender_id'], ['members.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_recipient_id'), 'notifications', ['recipient_id'], unique=False)

    # Composite index for the inbox query (unread first page per member)
    op.create_index('ix_notifications_recipient_read', 'notifications', ['recipient_id', 'is_read'], unique=False)

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payer_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(), nullable=False),
        sa.Column('transaction_id', sa.String(), nullable=False),
        sa.Column('coupon_used', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['payer_id'], ['members.id'], ),
        sa.ForeignKeyConstraint(['match_id'], ['match_requests.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id'),
        sa.UniqueConstraint('transaction_id')
    )
    op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
    op.create_index(op.f('ix_payments_payer_id'), 'payments', ['payer_id'], unique=False)


def downgrade() -> None:
    op.drop_table('payments')
    op.drop_index('ix_notifications_recipient_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('match_requests')
    op.drop_index('ix_dating_applications_member_created', table_name='dating_applications')
    op.drop_table('dating_applications')
    op.drop_table('member_books')
    op.drop_table('members')
