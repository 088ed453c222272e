"""create users, credit ledger, leaderboards and payments

Revision ID: 5c2e9a7d1b40
Revises:
Create Date: 2025-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=255), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=True),
            sa.Column('solana_wallet', sa.String(length=255), nullable=True),
            sa.Column('faction', sa.String(length=16), nullable=True),
            sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('achievements', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('discord_id', sa.String(length=64), nullable=True),
            sa.Column('discord_username', sa.String(length=255), nullable=True),
            sa.Column('discord_avatar', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.CheckConstraint('credits >= 0', name='ck_users_credits_non_negative'),
        )
        op.create_index('ix_users_username', 'users', ['username'], unique=True)
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_discord_id', 'users', ['discord_id'], unique=True)

    if 'credit_transactions' not in existing_tables:
        op.create_table(
            'credit_transactions',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('description', sa.String(length=255), nullable=False),
            sa.Column('type', sa.String(length=16), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_credit_transactions_user_id', 'credit_transactions', ['user_id'])

    if 'game_scores' not in existing_tables:
        op.create_table(
            'game_scores',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('username', sa.String(length=255), nullable=False),
            sa.Column('score', sa.Integer(), nullable=False),
            sa.Column('points', sa.Integer(), nullable=False),
            sa.Column('played_at', sa.DateTime(), nullable=False),
            sa.Column('leaderboard_type', sa.String(length=16), nullable=False),
            sa.Column('period_start', sa.DateTime(), nullable=False),
            sa.Column('period_end', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_game_scores_game_id', 'game_scores', ['game_id'])
        op.create_index('ix_game_scores_user_id', 'game_scores', ['user_id'])
        op.create_index('ix_game_scores_leaderboard_type', 'game_scores', ['leaderboard_type'])

    if 'global_leaderboards' not in existing_tables:
        op.create_table(
            'global_leaderboards',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
            sa.Column('total_points', sa.Integer(), nullable=False),
            sa.Column('rank', sa.Integer(), nullable=False),
            sa.Column('last_updated', sa.DateTime(), nullable=False),
        )

    if 'payments' not in existing_tables:
        op.create_table(
            'payments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=False, unique=True),
            sa.Column('package_id', sa.String(length=32), nullable=False),
            sa.Column('package_name', sa.String(length=64), nullable=False),
            sa.Column('amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('credits', sa.Integer(), nullable=False),
            sa.Column('currency', sa.String(length=8), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_payments_user_id', 'payments', ['user_id'])


def downgrade():
    op.drop_table('payments')
    op.drop_table('global_leaderboards')
    op.drop_table('game_scores')
    op.drop_table('credit_transactions')
    op.drop_table('users')
