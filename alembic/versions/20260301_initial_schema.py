"""Create owners, categories, recurring_templates and commitments

Revision ID: 3f1a7c20b9d4
Revises:
Create Date: 2026-03-01

Initial schema. Instants are stored in UTC; template times and dates are
local to the owner's zone. skip_days holds ISO dates as a JSON list.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a7c20b9d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('owners',
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username')
    )
    op.create_table('categories',
        sa.Column('owner_id', sa.CHAR(length=32), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('is_uncategorized', sa.Boolean(), nullable=False),
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('categories', schema=None) as batch_op:
        batch_op.create_index('idx_category_owner', ['owner_id'], unique=False)

    op.create_table('recurring_templates',
        sa.Column('owner_id', sa.CHAR(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('category_id', sa.CHAR(length=32), nullable=True),
        sa.Column('recurrence_summary', sa.String(length=500), nullable=True),
        sa.Column('skip_days', sa.JSON(), nullable=False),
        sa.Column('provisional', sa.Boolean(), nullable=False),
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('recurring_templates', schema=None) as batch_op:
        batch_op.create_index('idx_template_owner', ['owner_id'], unique=False)
        batch_op.create_index('idx_template_owner_range', ['owner_id', 'provisional', 'start_date', 'end_date'], unique=False)

    op.create_table('commitments',
        sa.Column('owner_id', sa.CHAR(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('start_timezone', sa.String(length=64), nullable=True),
        sa.Column('end_timezone', sa.String(length=64), nullable=True),
        sa.Column('category_id', sa.CHAR(length=32), nullable=True),
        sa.Column('recurring_template_id', sa.CHAR(length=32), nullable=True),
        sa.Column('provisional', sa.Boolean(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recurring_template_id'], ['recurring_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('commitments', schema=None) as batch_op:
        batch_op.create_index('idx_commitment_owner', ['owner_id'], unique=False)
        batch_op.create_index('idx_commitment_template', ['recurring_template_id'], unique=False)
        batch_op.create_index('idx_commitment_owner_range', ['owner_id', 'provisional', 'start_time', 'end_time'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('commitments', schema=None) as batch_op:
        batch_op.drop_index('idx_commitment_owner_range')
        batch_op.drop_index('idx_commitment_template')
        batch_op.drop_index('idx_commitment_owner')
    op.drop_table('commitments')

    with op.batch_alter_table('recurring_templates', schema=None) as batch_op:
        batch_op.drop_index('idx_template_owner_range')
        batch_op.drop_index('idx_template_owner')
    op.drop_table('recurring_templates')

    with op.batch_alter_table('categories', schema=None) as batch_op:
        batch_op.drop_index('idx_category_owner')
    op.drop_table('categories')
    op.drop_table('owners')
