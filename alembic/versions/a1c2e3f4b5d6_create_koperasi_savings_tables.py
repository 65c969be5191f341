"""create_koperasi_savings_tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'user',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('admin', 'staff', name='userroleenum', native_enum=False), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('user', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_email'), ['email'], unique=True)

    op.create_table(
        'product',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=150), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('term_duration', sa.Integer(), nullable=True),
        sa.Column('return_profit', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # current_upgrade_id gets its foreign key once product_upgrade exists
    op.create_table(
        'member',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('uuid', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('gender', sa.String(length=1), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('complete_address', sa.Text(), nullable=True),
        sa.Column('account_number', sa.String(length=50), nullable=True),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('has_upgraded', sa.Boolean(), nullable=False),
        sa.Column('current_upgrade_id', sa.Uuid(), nullable=True),
        sa.Column('savings_start_date', sa.Date(), nullable=True),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_by', sa.Uuid(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['product.id'], ),
        sa.ForeignKeyConstraint(['completed_by'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_member_uuid'), ['uuid'], unique=True)
        batch_op.create_index(batch_op.f('ix_member_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_member_has_upgraded'), ['has_upgraded'], unique=False)

    op.create_table(
        'product_upgrade',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('old_product_id', sa.Uuid(), nullable=False),
        sa.Column('new_product_id', sa.Uuid(), nullable=False),
        sa.Column('old_monthly_deposit', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('new_monthly_deposit', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('completed_periods_at_upgrade', sa.Integer(), nullable=False),
        sa.Column('total_periods', sa.Integer(), nullable=False),
        sa.Column('remaining_periods', sa.Integer(), nullable=False),
        sa.Column('total_shortfall', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('compensation_per_month', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('new_payment_with_compensation', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('upgrade_date', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.ForeignKeyConstraint(['old_product_id'], ['product.id'], ),
        sa.ForeignKeyConstraint(['new_product_id'], ['product.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('product_upgrade', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_upgrade_member_id'), ['member_id'], unique=False)

    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.create_foreign_key('fk_member_current_upgrade', 'product_upgrade', ['current_upgrade_id'], ['id'])

    op.create_table(
        'savings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('installment_period', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('savings_date', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('type', sa.Enum('Setoran', 'Penarikan', name='savingstype', native_enum=False), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('status', sa.Enum('Pending', 'Approved', 'Rejected', 'Partial', name='savingsstatus', native_enum=False), nullable=False),
        sa.Column('payment_type', sa.Enum('Full', 'Partial', name='paymenttype', native_enum=False), nullable=False),
        sa.Column('partial_sequence', sa.Integer(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('proof_file', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('approved_by', sa.Uuid(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_by', sa.Uuid(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['product.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['user.id'], ),
        sa.ForeignKeyConstraint(['approved_by'], ['user.id'], ),
        sa.ForeignKeyConstraint(['rejected_by'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('savings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_savings_member_id'), ['member_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_savings_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_savings_status'), ['status'], unique=False)
        batch_op.create_index('ix_savings_member_period', ['member_id', 'installment_period'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('savings', schema=None) as batch_op:
        batch_op.drop_index('ix_savings_member_period')
        batch_op.drop_index(batch_op.f('ix_savings_status'))
        batch_op.drop_index(batch_op.f('ix_savings_product_id'))
        batch_op.drop_index(batch_op.f('ix_savings_member_id'))
    op.drop_table('savings')

    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.drop_constraint('fk_member_current_upgrade', type_='foreignkey')

    with op.batch_alter_table('product_upgrade', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_product_upgrade_member_id'))
    op.drop_table('product_upgrade')

    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_member_has_upgraded'))
        batch_op.drop_index(batch_op.f('ix_member_product_id'))
        batch_op.drop_index(batch_op.f('ix_member_uuid'))
    op.drop_table('member')

    op.drop_table('product')

    with op.batch_alter_table('user', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_email'))
    op.drop_table('user')
