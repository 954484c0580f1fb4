"""Initial migration - campaigns, submissions, sessions

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


submission_status = sa.Enum(
    'pending', 'eligible', 'winner', 'paid', 'rejected',
    name='submissionstatus'
)


def upgrade() -> None:
    # Create campaigns table
    op.create_table('campaigns',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False, comment='Campaign display name'),
        sa.Column('min_views', sa.Integer(), nullable=False, comment='Minimum view count'),
        sa.Column('min_likes', sa.Integer(), nullable=False, comment='Minimum like count'),
        sa.Column('min_comments', sa.Integer(), nullable=False, comment='Minimum comment count'),
        sa.Column('min_shares', sa.Integer(), nullable=False, comment='Minimum share count'),
        sa.Column('reward_amount', sa.String(length=80), nullable=False, comment='Reward per winner in token units (decimal string)'),
        sa.Column('max_winners', sa.Integer(), nullable=False, comment='Advisory cap on the number of winners'),
        sa.Column('is_active', sa.Boolean(), nullable=False, comment='Whether the campaign accepts submissions'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create submissions table
    op.create_table('submissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('campaign_id', sa.Integer(), nullable=False, comment='Campaign this submission competes in'),
        sa.Column('content_id', sa.String(length=64), nullable=False, comment='Platform content identifier'),
        sa.Column('content_url', sa.Text(), nullable=False, comment='Submitted content URL'),
        sa.Column('submitter_identity', sa.String(length=128), nullable=False, comment='External account id of the submitter'),
        sa.Column('submitter_username', sa.String(length=128), nullable=True, comment='External account display name'),
        sa.Column('payout_address', sa.String(length=44), nullable=False, comment='Solana address receiving the reward'),
        sa.Column('views', sa.BigInteger(), nullable=False),
        sa.Column('likes', sa.BigInteger(), nullable=False),
        sa.Column('comments', sa.BigInteger(), nullable=False),
        sa.Column('shares', sa.BigInteger(), nullable=False),
        sa.Column('status', submission_status, nullable=False, comment='Lifecycle status'),
        sa.Column('tx_reference', sa.String(length=88), nullable=True, comment='Settlement transaction signature'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='When the reward transfer was confirmed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('content_id')
    )

    # Create sessions table
    op.create_table('sessions',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('external_account_id', sa.String(length=128), nullable=True, comment='Platform account identifier (TikTok open_id)'),
        sa.Column('username', sa.String(length=128), nullable=True, comment='Platform display name'),
        sa.Column('access_token', sa.Text(), nullable=True, comment='Provider access credential'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create indexes
    op.create_index('idx_campaign_active', 'campaigns', ['is_active', 'id'])
    op.create_index('idx_submission_status', 'submissions', ['status'])
    op.create_index('idx_submission_campaign', 'submissions', ['campaign_id', 'status'])
    op.create_index('idx_submission_tx_reference', 'submissions', ['tx_reference'])


def downgrade() -> None:
    # Drop indexes
    op.drop_index('idx_submission_tx_reference', table_name='submissions')
    op.drop_index('idx_submission_campaign', table_name='submissions')
    op.drop_index('idx_submission_status', table_name='submissions')
    op.drop_index('idx_campaign_active', table_name='campaigns')

    # Drop tables
    op.drop_table('sessions')
    op.drop_table('submissions')
    op.drop_table('campaigns')

    # Drop enum types
    submission_status.drop(op.get_bind(), checkfirst=True)
