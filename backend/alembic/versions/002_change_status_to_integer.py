"""Change users.status from text to integer codes.

Mapping: active=0, inactive=1, suspended=3 (2 is reserved). Unrecognized
text becomes 0 on the way up; unrecognized codes become 'active' on the way
down.

Revision ID: 002
Revises: 001
Create Date: 2025-08-05

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('users', sa.Column('status_temp', sa.SmallInteger(), nullable=True))

    op.execute("""
        UPDATE users
        SET status_temp = CASE
            WHEN status = 'active' THEN 0
            WHEN status = 'inactive' THEN 1
            WHEN status = 'suspended' THEN 3
            ELSE 0
        END
    """)

    # Separate batches: SQLite rebuilds the table once per batch
    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_column('status')

    with op.batch_alter_table('users') as batch_op:
        batch_op.alter_column(
            'status_temp',
            new_column_name='status',
            existing_type=sa.SmallInteger(),
            server_default='0',
            nullable=False,
        )


def downgrade() -> None:
    op.add_column('users', sa.Column('status_temp', sa.String(20), nullable=True))

    op.execute("""
        UPDATE users
        SET status_temp = CASE
            WHEN status = 0 THEN 'active'
            WHEN status = 1 THEN 'inactive'
            WHEN status = 3 THEN 'suspended'
            ELSE 'active'
        END
    """)

    with op.batch_alter_table('users') as batch_op:
        batch_op.drop_column('status')

    with op.batch_alter_table('users') as batch_op:
        batch_op.alter_column(
            'status_temp',
            new_column_name='status',
            existing_type=sa.String(20),
        )
