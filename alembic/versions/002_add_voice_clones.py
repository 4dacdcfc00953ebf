"""Add voice_clones and voice_samples tables

Revision ID: 002_add_voice_clones
Revises: 001_initial
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002_add_voice_clones'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

voice_clone_status = postgresql.ENUM(
    'TRAINING', 'ACTIVE', 'FAILED', name='voiceclonestatus', create_type=False
)


def upgrade() -> None:
    voice_clone_status.create(op.get_bind(), checkfirst=True)

    # Create voice_clones table
    op.create_table(
        'voice_clones',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('elevenlabs_voice_id', sa.String(100), nullable=True),
        sa.Column('status', voice_clone_status, nullable=False, server_default='TRAINING'),
        sa.Column('sample_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create voice_samples table
    op.create_table(
        'voice_samples',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'voice_clone_id',
            sa.String(36),
            sa.ForeignKey('voice_clones.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('voice_samples')
    op.drop_table('voice_clones')
    op.execute('DROP TYPE IF EXISTS voiceclonestatus')
