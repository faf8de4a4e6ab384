"""cart payment ledger, contacts and profile changes

Revision ID: 8b2e4d6a1c57
Revises: 3f1c9a7d2b10
Create Date: 2026-10-17 15:40:03.118520

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '8b2e4d6a1c57'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        'cart_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payment_intent_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_cart_payments_payment_intent_id'), 'cart_payments', ['payment_intent_id'], unique=True)
    op.create_index(op.f('ix_cart_payments_user_id'), 'cart_payments', ['user_id'], unique=False)

    # carried over so earlier checkouts still replay cleanly
    op.execute(
        "INSERT INTO cart_payments (payment_intent_id, user_id, cart_id, amount, created_at) "
        "SELECT last_payment_intent_id, user_id, id, 0, updated_at FROM carts "
        "WHERE last_payment_intent_id IS NOT NULL"
    )
    with op.batch_alter_table('carts') as batch_op:
        batch_op.drop_column('last_payment_intent_id')

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('subject', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_contacts_status'), 'contacts', ['status'], unique=False)

    op.create_table(
        'profile_changes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('otp_hash', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_profile_changes_user_id'), 'profile_changes', ['user_id'], unique=True)


def downgrade():
    op.drop_index(op.f('ix_profile_changes_user_id'), table_name='profile_changes')
    op.drop_table('profile_changes')

    op.drop_index(op.f('ix_contacts_status'), table_name='contacts')
    op.drop_table('contacts')

    with op.batch_alter_table('carts') as batch_op:
        batch_op.add_column(sa.Column('last_payment_intent_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True))

    op.drop_index(op.f('ix_cart_payments_user_id'), table_name='cart_payments')
    op.drop_index(op.f('ix_cart_payments_payment_intent_id'), table_name='cart_payments')
    op.drop_table('cart_payments')
