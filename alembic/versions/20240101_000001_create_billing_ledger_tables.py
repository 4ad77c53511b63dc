"""Create billing ledger tables

Revision ID: 20240101_000001
Revises: None
Create Date: 2024-01-01

This migration creates the club billing ledger schema: clubs and billable
accounts, invoices, payments and allocations, billing settings, payment
arrangements, document sequences and the audit event store.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20240101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CITY_LEDGER_TYPES = ('CORPORATE', 'HOUSE', 'VENDOR', 'OTHER')
INVOICE_STATUSES = ('DRAFT', 'SENT', 'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'VOID')
PAYMENT_METHODS = ('CASH', 'CHECK', 'CREDIT_CARD', 'BANK_TRANSFER', 'ACCOUNT_CREDIT', 'OTHER')
BILLING_FREQUENCIES = ('MONTHLY', 'QUARTERLY', 'SEMI_ANNUAL', 'ANNUAL')
BILLING_TIMINGS = ('ADVANCE', 'ARREARS')
CYCLE_ALIGNMENTS = ('CALENDAR', 'ANNIVERSARY')
PRORATION_METHODS = ('DAILY', 'MONTHLY', 'NONE')
LATE_FEE_TYPES = ('PERCENTAGE', 'FIXED', 'TIERED')
ARRANGEMENT_FREQUENCIES = ('WEEKLY', 'BIWEEKLY', 'MONTHLY')
ARRANGEMENT_STATUSES = ('DRAFT', 'ACTIVE', 'COMPLETED', 'CANCELLED')
INSTALLMENT_STATUSES = ('PENDING', 'PAID', 'WAIVED')


def _enum(values, name):
    return sa.Enum(*values, name=name, create_constraint=True)


def _money(name, **kwargs):
    return sa.Column(name, sa.Numeric(precision=12, scale=2), **kwargs)


def _created_at():
    return sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    """Create the billing ledger tables."""
    op.create_table(
        'clubs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('member_number', sa.String(length=50), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('join_date', sa.Date(), nullable=True),
        _money('outstanding_balance', nullable=False, server_default='0'),
        _money('credit_balance', nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_members_club_id', ondelete='CASCADE'),
    )
    op.create_index('ix_members_club_id', 'members', ['club_id'])

    op.create_table(
        'city_ledgers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('account_number', sa.String(length=50), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('account_type', _enum(CITY_LEDGER_TYPES, 'city_ledger_type'), nullable=False),
        _money('outstanding_balance', nullable=False, server_default='0'),
        _money('credit_balance', nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_city_ledgers_club_id', ondelete='CASCADE'),
    )
    op.create_index('ix_city_ledgers_club_id', 'city_ledgers', ['club_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('city_ledger_id', sa.Integer(), nullable=True),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        _money('total_amount', nullable=False),
        _money('paid_amount', nullable=False, server_default='0'),
        _money('balance_due', nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('paid_date', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('status', _enum(INVOICE_STATUSES, 'invoice_status'), nullable=False, server_default='DRAFT'),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_invoices_club_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], name='fk_invoices_member_id'),
        sa.ForeignKeyConstraint(['city_ledger_id'], ['city_ledgers.id'], name='fk_invoices_city_ledger_id'),
        sa.CheckConstraint('balance_due >= 0', name='balance_due_non_negative'),
        sa.CheckConstraint(
            '(member_id IS NOT NULL AND city_ledger_id IS NULL) '
            'OR (member_id IS NULL AND city_ledger_id IS NOT NULL)',
            name='single_account',
        ),
    )
    op.create_index('ix_invoices_club_id', 'invoices', ['club_id'])
    op.create_index('ix_invoices_member_id', 'invoices', ['member_id'])
    op.create_index('ix_invoices_city_ledger_id', 'invoices', ['city_ledger_id'])
    op.create_index('ix_invoices_due_date', 'invoices', ['due_date'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('city_ledger_id', sa.Integer(), nullable=True),
        sa.Column('receipt_number', sa.String(length=50), nullable=False),
        _money('amount', nullable=False),
        sa.Column('method', _enum(PAYMENT_METHODS, 'payment_method'), nullable=False),
        sa.Column('payment_date', sa.DateTime(), nullable=False),
        sa.Column('reference_number', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_payments_club_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], name='fk_payments_member_id'),
        sa.ForeignKeyConstraint(['city_ledger_id'], ['city_ledgers.id'], name='fk_payments_city_ledger_id'),
        sa.UniqueConstraint('club_id', 'receipt_number', name='uq_payments_club_receipt'),
    )
    op.create_index('ix_payments_club_id', 'payments', ['club_id'])
    op.create_index('ix_payments_member_id', 'payments', ['member_id'])
    op.create_index('ix_payments_city_ledger_id', 'payments', ['city_ledger_id'])

    op.create_table(
        'payment_allocations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        _money('amount', nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['payment_id'], ['payments.id'], name='fk_payment_allocations_payment_id', ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['invoice_id'], ['invoices.id'], name='fk_payment_allocations_invoice_id', ondelete='RESTRICT',
        ),
    )
    op.create_index('ix_payment_allocations_payment_id', 'payment_allocations', ['payment_id'])
    op.create_index('ix_payment_allocations_invoice_id', 'payment_allocations', ['invoice_id'])

    op.create_table(
        'club_billing_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('default_frequency', _enum(BILLING_FREQUENCIES, 'billing_frequency'), nullable=False),
        sa.Column('default_timing', _enum(BILLING_TIMINGS, 'billing_timing'), nullable=False),
        sa.Column('default_alignment', _enum(CYCLE_ALIGNMENTS, 'cycle_alignment'), nullable=False),
        sa.Column('default_billing_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('invoice_generation_lead', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('invoice_due_days', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('grace_period_days', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('late_fee_type', _enum(LATE_FEE_TYPES, 'late_fee_type'), nullable=False),
        _money('late_fee_amount', nullable=False, server_default='0'),
        sa.Column('late_fee_percentage', sa.Numeric(precision=5, scale=2), nullable=False, server_default='1.5'),
        _money('max_late_fee', nullable=True),
        sa.Column('auto_apply_late_fee', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('prorate_new_members', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('prorate_changes', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('proration_method', _enum(PRORATION_METHODS, 'proration_method'), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_club_billing_settings_club_id', ondelete='CASCADE'),
    )
    op.create_index('ix_club_billing_settings_club_id', 'club_billing_settings', ['club_id'], unique=True)

    op.create_table(
        'member_billing_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('billing_frequency', _enum(BILLING_FREQUENCIES, 'billing_frequency'), nullable=True),
        sa.Column('billing_timing', _enum(BILLING_TIMINGS, 'billing_timing'), nullable=True),
        sa.Column('billing_alignment', _enum(CYCLE_ALIGNMENTS, 'cycle_alignment'), nullable=True),
        sa.Column('custom_billing_day', sa.Integer(), nullable=True),
        sa.Column('next_billing_date', sa.Date(), nullable=True),
        sa.Column('proration_override', _enum(PRORATION_METHODS, 'proration_method'), nullable=True),
        sa.Column('custom_grace_period', sa.Integer(), nullable=True),
        sa.Column('custom_late_fee_exempt', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('billing_hold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('billing_hold_reason', sa.String(length=500), nullable=True),
        sa.Column('billing_hold_until', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], name='fk_member_billing_profiles_member_id', ondelete='CASCADE',
        ),
    )
    op.create_index('ix_member_billing_profiles_member_id', 'member_billing_profiles', ['member_id'], unique=True)

    op.create_table(
        'payment_arrangements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('city_ledger_id', sa.Integer(), nullable=True),
        sa.Column('arrangement_number', sa.String(length=50), nullable=False),
        sa.Column('installment_count', sa.Integer(), nullable=False),
        sa.Column('frequency', _enum(ARRANGEMENT_FREQUENCIES, 'arrangement_frequency'), nullable=False),
        _money('total_amount', nullable=False),
        _money('paid_amount', nullable=False, server_default='0'),
        _money('remaining_amount', nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', _enum(ARRANGEMENT_STATUSES, 'arrangement_status'), nullable=False, server_default='DRAFT'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_payment_arrangements_club_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], name='fk_payment_arrangements_member_id'),
        sa.ForeignKeyConstraint(['city_ledger_id'], ['city_ledgers.id'], name='fk_payment_arrangements_city_ledger_id'),
        sa.UniqueConstraint('club_id', 'arrangement_number', name='uq_payment_arrangements_club_number'),
    )
    op.create_index('ix_payment_arrangements_club_id', 'payment_arrangements', ['club_id'])
    op.create_index('ix_payment_arrangements_member_id', 'payment_arrangements', ['member_id'])
    op.create_index('ix_payment_arrangements_city_ledger_id', 'payment_arrangements', ['city_ledger_id'])
    op.create_index('ix_payment_arrangements_status', 'payment_arrangements', ['status'])

    op.create_table(
        'arrangement_installments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('arrangement_id', sa.Integer(), nullable=False),
        sa.Column('installment_no', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        _money('amount', nullable=False),
        _money('paid_amount', nullable=False, server_default='0'),
        sa.Column('status', _enum(INSTALLMENT_STATUSES, 'installment_status'), nullable=False, server_default='PENDING'),
        sa.Column('payment_id', sa.Integer(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['arrangement_id'], ['payment_arrangements.id'],
            name='fk_arrangement_installments_arrangement_id', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], name='fk_arrangement_installments_payment_id'),
        sa.UniqueConstraint('arrangement_id', 'installment_no', name='uq_arrangement_installments_number'),
    )
    op.create_index('ix_arrangement_installments_arrangement_id', 'arrangement_installments', ['arrangement_id'])

    op.create_table(
        'arrangement_invoices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('arrangement_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['arrangement_id'], ['payment_arrangements.id'],
            name='fk_arrangement_invoices_arrangement_id', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], name='fk_arrangement_invoices_invoice_id'),
        sa.UniqueConstraint('arrangement_id', 'invoice_id', name='uq_arrangement_invoices_pair'),
    )
    op.create_index('ix_arrangement_invoices_arrangement_id', 'arrangement_invoices', ['arrangement_id'])
    op.create_index('ix_arrangement_invoices_invoice_id', 'arrangement_invoices', ['invoice_id'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('prefix', sa.String(length=10), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name='fk_document_sequences_club_id', ondelete='CASCADE'),
        sa.UniqueConstraint('club_id', 'prefix', 'year', name='uq_document_sequences_scope'),
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('aggregate_type', sa.String(length=100), nullable=False),
        sa.Column('aggregate_id', sa.String(length=100), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_events_club_id', 'audit_events', ['club_id'])
    op.create_index('ix_audit_events_aggregate_id', 'audit_events', ['aggregate_id'])


def downgrade() -> None:
    """Drop the billing ledger tables."""
    op.drop_table('audit_events')
    op.drop_table('document_sequences')
    op.drop_table('arrangement_invoices')
    op.drop_table('arrangement_installments')
    op.drop_table('payment_arrangements')
    op.drop_table('member_billing_profiles')
    op.drop_table('club_billing_settings')
    op.drop_table('payment_allocations')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('city_ledgers')
    op.drop_table('members')
    op.drop_table('clubs')
