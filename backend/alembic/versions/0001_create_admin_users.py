"""Create admin_users table

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

One row per identity allowed into the admin area. The row is keyed by the
identity provider's email; role values are constrained to the fixed
hierarchy (super_admin > admin > editor > viewer).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str | None = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ADMIN_ROLES = ('super_admin', 'admin', 'editor', 'viewer')


def upgrade() -> None:
    """Apply schema changes."""
    op.create_table(
        'admin_users',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), server_default='viewer', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['admin_users.id'], name=op.f('fk_admin_users_created_by_admin_users'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_admin_users')),
        sa.UniqueConstraint('email', name=op.f('uq_admin_users_email')),
        sa.CheckConstraint(
            "role IN (" + ", ".join(f"'{role}'" for role in ADMIN_ROLES) + ")",
            name='valid_admin_role',
        ),
    )
    op.create_index('ix_admin_users_email', 'admin_users', ['email'], unique=False)
    # Profile lookups compare lower(email)
    op.create_index(
        'uq_admin_users_email_lower',
        'admin_users',
        [sa.text('lower(email)')],
        unique=True,
    )


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_index('uq_admin_users_email_lower', table_name='admin_users')
    op.drop_index('ix_admin_users_email', table_name='admin_users')
    op.drop_table('admin_users')
