"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy stores enum member names
credential_status = postgresql.ENUM('ACTIVE', 'REVOKED', name='credentialstatus', create_type=False)
asset_status = postgresql.ENUM(
    'PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', name='assetstatus', create_type=False
)


def upgrade() -> None:
    bind = op.get_bind()
    credential_status.create(bind, checkfirst=True)
    asset_status.create(bind, checkfirst=True)

    # Create access_tokens table
    op.create_table(
        'access_tokens',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('token_hash', sa.String(255), nullable=False, unique=True),
        sa.Column('token_prefix', sa.String(12), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create user_api_keys table
    op.create_table(
        'user_api_keys',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('service', sa.String(50), nullable=False, index=True),
        sa.Column('api_key_encrypted', sa.Text(), nullable=False),
        sa.Column('key_hint', sa.String(8), nullable=True),
        sa.Column('status', credential_status, nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create generated_images table
    op.create_table(
        'generated_images',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('negative_prompt', sa.Text(), nullable=True),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('model', sa.String(100), nullable=True),
        sa.Column('task_id', sa.String(100), nullable=True, index=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('status', asset_status, nullable=False, server_default='PENDING'),
        sa.Column('generation_type', sa.String(20), nullable=False, server_default='text2img'),
        sa.Column('input_image_url', sa.Text(), nullable=True),
        sa.Column('parameters', postgresql.JSON(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create generated_videos table
    op.create_table(
        'generated_videos',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('prompt', sa.Text(), nullable=True),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('model', sa.String(100), nullable=True),
        sa.Column('task_id', sa.String(100), nullable=True, index=True),
        sa.Column('video_url', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('duration', sa.Float(), nullable=True),
        sa.Column('status', asset_status, nullable=False, server_default='PENDING'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('generation_type', sa.String(20), nullable=False, server_default='text2vid'),
        sa.Column('parameters', postgresql.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create tts_generations table
    op.create_table(
        'tts_generations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('voice_id', sa.String(100), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('settings', postgresql.JSON(), nullable=True),
        sa.Column('audio_url', sa.Text(), nullable=True),
        sa.Column('status', asset_status, nullable=False, server_default='PENDING'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create indexes
    op.create_index('ix_generated_videos_status', 'generated_videos', ['status'])
    op.create_index('ix_generated_videos_created_at', 'generated_videos', ['created_at'])
    op.create_index('ix_user_api_keys_lookup', 'user_api_keys', ['user_id', 'service', 'status'])


def downgrade() -> None:
    op.drop_index('ix_user_api_keys_lookup')
    op.drop_index('ix_generated_videos_created_at')
    op.drop_index('ix_generated_videos_status')
    op.drop_table('tts_generations')
    op.drop_table('generated_videos')
    op.drop_table('generated_images')
    op.drop_table('user_api_keys')
    op.drop_table('access_tokens')
    op.execute('DROP TYPE IF EXISTS assetstatus')
    op.execute('DROP TYPE IF EXISTS credentialstatus')
