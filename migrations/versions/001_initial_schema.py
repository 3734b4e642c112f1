"""Initial schema - league tables used by the scoring engine

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # SEASONS & PROFILES
    # =========================================================================
    op.create_table(
        'seasons',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('username', sa.String(100), nullable=True),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('listen_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('musi_coins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # =========================================================================
    # ARTISTS
    # =========================================================================
    op.create_table(
        'artists_cache',
        sa.Column('spotify_id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(300), nullable=True),
        sa.Column('current_popularity', sa.Integer(), server_default='0'),
        sa.Column('current_followers', sa.BigInteger(), server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'featured_artists',
        sa.Column('spotify_id', sa.String(64), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'weekly_snapshots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('artist_id', sa.String(64), nullable=False),
        sa.Column('popularity', sa.Integer(), nullable=False),
        sa.Column('followers', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('week_number', 'artist_id', name='uq_weekly_snapshots_week_artist'),
    )
    op.create_index('ix_weekly_snapshots_week', 'weekly_snapshots', ['week_number'])

    op.create_table(
        'weekly_scores',
        sa.Column('week_number', sa.Integer(), primary_key=True),
        sa.Column('artist_id', sa.String(64), primary_key=True),
        sa.Column('popularity_gain', sa.Integer(), server_default='0'),
        sa.Column('follower_gain_percent', sa.Float(), server_default='0'),
        sa.Column('release_bonus', sa.Integer(), server_default='0'),
        sa.Column('total_points', sa.Integer(), server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # =========================================================================
    # ROSTERS, LEDGER & BETS
    # =========================================================================
    op.create_table(
        'teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('slot_1_id', sa.String(64), nullable=True),
        sa.Column('slot_2_id', sa.String(64), nullable=True),
        sa.Column('slot_3_id', sa.String(64), nullable=True),
        sa.Column('slot_4_id', sa.String(64), nullable=True),
        sa.Column('slot_5_id', sa.String(64), nullable=True),
        sa.Column('captain_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'week_number', name='uq_teams_user_week'),
    )
    op.create_index('ix_teams_week', 'teams', ['week_number'])

    op.create_table(
        'daily_score_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('points_gained', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('seen_by_user', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_daily_score_logs_user_week', 'daily_score_logs', ['user_id', 'week_number'])

    op.create_table(
        'daily_promos',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('artist_id', sa.String(64), nullable=True),
        sa.Column('week_number', sa.Integer(), nullable=True),
        sa.Column('bet_done', sa.Boolean(), server_default=sa.false()),
        sa.Column('bet_resolved', sa.Boolean(), server_default=sa.false()),
        sa.Column('bet_snapshot', postgresql.JSONB(), nullable=True),
        sa.Column('total_points', sa.Integer(), server_default='0'),
        sa.Column('total_coins', sa.Integer(), server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_daily_promos_pending', 'daily_promos', ['bet_done', 'bet_resolved'])

    # =========================================================================
    # LEADERBOARD
    # =========================================================================
    op.create_table(
        'leaderboard_config',
        sa.Column('tier', sa.String(20), primary_key=True),
        sa.Column('reward_musicoins', sa.Integer(), server_default='0'),
    )

    op.create_table(
        'weekly_leaderboard_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('reward_musicoins', sa.Integer(), server_default='0'),
        sa.Column('is_seen', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'week_number', name='uq_leaderboard_history_user_week'),
    )
    op.create_index(
        'ix_leaderboard_history_week_rank', 'weekly_leaderboard_history', ['week_number', 'rank']
    )

    # Reward tiers start at zero; operators set the amounts
    op.execute("""
        INSERT INTO leaderboard_config (tier, reward_musicoins) VALUES
            ('rank_1', 0), ('rank_2', 0), ('rank_3', 0),
            ('top_10', 0), ('top_20', 0), ('top_50', 0), ('top_100', 0)
        ON CONFLICT (tier) DO NOTHING
    """)


def downgrade() -> None:
    op.drop_table('weekly_leaderboard_history')
    op.drop_table('leaderboard_config')
    op.drop_table('daily_promos')
    op.drop_table('daily_score_logs')
    op.drop_table('teams')
    op.drop_table('weekly_scores')
    op.drop_table('weekly_snapshots')
    op.drop_table('featured_artists')
    op.drop_table('artists_cache')
    op.drop_table('profiles')
    op.drop_table('seasons')
