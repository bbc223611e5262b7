"""Branch and department status

Revision ID: 8b1f0d6e2c93
Revises: 5e2a9c41d7b0
Create Date: 2026-10-19 00:02:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8b1f0d6e2c93'
down_revision: Union[str, None] = '5e2a9c41d7b0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('branch', sa.Column('status', sa.String(length=50), nullable=False, server_default='active'))
    op.add_column('department', sa.Column('status', sa.String(length=50), nullable=False, server_default='active'))
    op.create_index('ix_department_status', 'department', ['status'])


def downgrade() -> None:
    op.drop_index('ix_department_status', table_name='department')
    op.drop_column('department', 'status')
    op.drop_column('branch', 'status')
