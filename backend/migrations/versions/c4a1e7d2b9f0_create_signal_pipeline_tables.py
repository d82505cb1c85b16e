"""Create signal pipeline tables

Revision ID: c4a1e7d2b9f0
Revises:
Create Date: 2026-10-18

This migration adds:
- pgvector extension
- industries, signals, users, config: operator-managed reference data
- linkedin_profiles: scrape targets
- pipeline_jobs: job state machine (single active job enforced by a partial unique index)
- posts, messages: pipeline output
- post_vectors: embedded posts
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector


# revision identifiers, used by Alembic.
revision = 'c4a1e7d2b9f0'
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSIONS = 768


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # ============================================
    # REFERENCE DATA
    # ============================================
    op.create_table(
        'industries',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('visible', sa.Boolean(), nullable=False, server_default='true'),
    )

    op.create_table(
        'signals',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('visible', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('embedding_query', sa.Text(), nullable=True),
        sa.Column('prompt', sa.Text(), nullable=True),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('telegram_chat_id', sa.Text(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('industry_ids', postgresql.ARRAY(sa.BigInteger()), nullable=False, server_default='{}'),
        sa.Column('signal_ids', postgresql.ARRAY(sa.BigInteger()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_users_admin', 'users', ['is_admin'])

    op.create_table(
        'config',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('singleton', sa.Boolean(), nullable=False, server_default='true', unique=True),
        sa.Column('cookie_default', postgresql.JSONB(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('min_delay', sa.Integer(), nullable=True),
        sa.Column('max_delay', sa.Integer(), nullable=True),
        sa.Column('deep_scrape', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('raw_data', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('proxy', postgresql.JSONB(), nullable=True),
        sa.Column('limit_per_source', sa.Integer(), nullable=True),
        sa.Column('memory_mbytes', sa.Integer(), nullable=True),
        sa.Column('debug', sa.Boolean(), nullable=False, server_default='false'),
    )

    # ============================================
    # SCRAPE TARGETS
    # ============================================
    op.create_table(
        'linkedin_profiles',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('url', sa.Text(), nullable=False, unique=True),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('occupation', sa.Text(), nullable=True),
        sa.Column('allowed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('industry_ids', postgresql.ARRAY(sa.BigInteger()), nullable=False, server_default='{}'),
        sa.Column('unverified_details', postgresql.JSONB(), nullable=True),
        sa.Column('unverified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_linkedin_profiles_allowed', 'linkedin_profiles', ['allowed'])
    op.create_index('idx_linkedin_profiles_industries', 'linkedin_profiles', ['industry_ids'], postgresql_using='gin')

    # ============================================
    # PIPELINE STATE
    # ============================================
    op.create_table(
        'pipeline_jobs',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='idle'),
        sa.Column('current_batch_offset', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('apify_run_id', sa.Text(), nullable=True),
        sa.Column('apify_dataset_id', sa.Text(), nullable=True),
        sa.Column('admin_chat_ids', postgresql.ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_retries', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_pipeline_jobs_status', 'pipeline_jobs', ['status'])
    op.create_index('idx_pipeline_jobs_started', 'pipeline_jobs', ['started_at'])
    # At most one non-terminal job
    op.execute(
        "CREATE UNIQUE INDEX uq_pipeline_jobs_single_active ON pipeline_jobs ((1)) "
        "WHERE status NOT IN ('completed', 'failed')"
    )

    # ============================================
    # PIPELINE OUTPUT
    # ============================================
    op.create_table(
        'posts',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('urn', sa.Text(), nullable=False, unique=True),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('occupation', sa.Text(), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('industry_ids', postgresql.ARRAY(sa.BigInteger()), nullable=False, server_default='{}'),
        sa.Column('source_url', sa.Text(), nullable=True),
        sa.Column('author_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_posts_posted_at', 'posts', ['posted_at'])
    op.create_index('idx_posts_industries', 'posts', ['industry_ids'], postgresql_using='gin')

    op.create_table(
        'messages',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('pipeline_job_id', sa.BigInteger(),
                  sa.ForeignKey('pipeline_jobs.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('industry_id', sa.BigInteger(),
                  sa.ForeignKey('industries.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('signal_id', sa.BigInteger(),
                  sa.ForeignKey('signals.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('message_text', sa.Text(), nullable=False),
        sa.Column('delivered_user_ids', postgresql.ARRAY(sa.BigInteger()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('pipeline_job_id', 'industry_id', 'signal_id', name='uq_messages_job_pair'),
    )
    op.create_index('idx_messages_created', 'messages', ['created_at'])

    op.create_table(
        'post_vectors',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('namespace', sa.Text(), nullable=False),
        sa.Column('vector_id', sa.Text(), nullable=False),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSIONS), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('namespace', 'vector_id', name='uq_post_vectors_namespace_vector'),
    )
    op.execute(
        "CREATE INDEX idx_post_vectors_embedding ON post_vectors "
        "USING hnsw (embedding vector_cosine_ops)"
    )


def downgrade() -> None:
    op.drop_table('post_vectors')
    op.drop_table('messages')
    op.drop_table('posts')
    op.execute("DROP INDEX IF EXISTS uq_pipeline_jobs_single_active")
    op.drop_table('pipeline_jobs')
    op.drop_table('linkedin_profiles')
    op.drop_table('config')
    op.drop_table('users')
    op.drop_table('signals')
    op.drop_table('industries')
