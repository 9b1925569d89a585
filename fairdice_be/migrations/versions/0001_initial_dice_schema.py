"""Initial dice schema: users, house ledger, bets, events and chain blocks"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    # --- user table ---
    op.create_table('user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_funds_controller', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_oracle', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)
    op.create_index(op.f('ix_user_is_active'), 'user', ['is_active'], unique=False)

    # --- house_ledger table (single row) ---
    op.create_table('house_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('locked_in_bets', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('jackpot_size', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('max_profit', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('oracle_address', sa.String(length=66), nullable=True),
        sa.Column('paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('upgrade_redirect', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    # --- dice_bet table ---
    op.create_table('dice_bet',
        sa.Column('commit', sa.String(length=64), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('wager_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('modulo', sa.Integer(), nullable=False),
        sa.Column('roll_under', sa.Integer(), nullable=False),
        sa.Column('mask', sa.String(length=64), nullable=False),
        sa.Column('placed_at_height', sa.BigInteger(), nullable=False),
        sa.Column('commit_deadline', sa.BigInteger(), nullable=False),
        sa.Column('win_amount', sa.BigInteger(), nullable=False),
        sa.Column('reserved_amount', sa.BigInteger(), nullable=False),
        sa.Column('jackpot_fee', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('reveal', sa.String(length=64), nullable=True),
        sa.Column('outcome', sa.Integer(), nullable=True),
        sa.Column('payout', sa.BigInteger(), nullable=True),
        sa.Column('jackpot_win', sa.BigInteger(), nullable=True),
        sa.Column('settled_at_height', sa.BigInteger(), nullable=True),
        sa.Column('is_refund', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('commit')
    )
    op.create_index(op.f('ix_dice_bet_owner_id'), 'dice_bet', ['owner_id'], unique=False)
    op.create_index(op.f('ix_dice_bet_placed_at_height'), 'dice_bet', ['placed_at_height'], unique=False)
    op.create_index('ix_dice_bet_owner_created', 'dice_bet', ['owner_id', 'created_at'], unique=False)

    # --- transaction table ---
    op.create_table('transaction',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('transaction_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='pending'),
        sa.Column('bet_commit', sa.String(length=64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transaction_user_id'), 'transaction', ['user_id'], unique=False)
    op.create_index(op.f('ix_transaction_transaction_type'), 'transaction', ['transaction_type'], unique=False)
    op.create_index(op.f('ix_transaction_status'), 'transaction', ['status'], unique=False)
    op.create_index(op.f('ix_transaction_bet_commit'), 'transaction', ['bet_commit'], unique=False)

    # --- bet_event table (append-only audit trail) ---
    op.create_table('bet_event',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('commit', sa.String(length=64), nullable=True),
        sa.Column('beneficiary_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bet_event_event_type'), 'bet_event', ['event_type'], unique=False)
    op.create_index(op.f('ix_bet_event_commit'), 'bet_event', ['commit'], unique=False)
    op.create_index(op.f('ix_bet_event_beneficiary_id'), 'bet_event', ['beneficiary_id'], unique=False)

    # --- chain_block table ---
    op.create_table('chain_block',
        sa.Column('height', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('block_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('height'),
        sa.UniqueConstraint('block_hash')
    )

    # --- token_blacklist table ---
    op.create_table('token_blacklist',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('jti', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_token_blacklist_jti'), 'token_blacklist', ['jti'], unique=True)


def downgrade():
    op.drop_index(op.f('ix_token_blacklist_jti'), table_name='token_blacklist')
    op.drop_table('token_blacklist')
    op.drop_table('chain_block')

    op.drop_index(op.f('ix_bet_event_beneficiary_id'), table_name='bet_event')
    op.drop_index(op.f('ix_bet_event_commit'), table_name='bet_event')
    op.drop_index(op.f('ix_bet_event_event_type'), table_name='bet_event')
    op.drop_table('bet_event')

    op.drop_index(op.f('ix_transaction_bet_commit'), table_name='transaction')
    op.drop_index(op.f('ix_transaction_status'), table_name='transaction')
    op.drop_index(op.f('ix_transaction_transaction_type'), table_name='transaction')
    op.drop_index(op.f('ix_transaction_user_id'), table_name='transaction')
    op.drop_table('transaction')

    op.drop_index('ix_dice_bet_owner_created', table_name='dice_bet')
    op.drop_index(op.f('ix_dice_bet_placed_at_height'), table_name='dice_bet')
    op.drop_index(op.f('ix_dice_bet_owner_id'), table_name='dice_bet')
    op.drop_table('dice_bet')

    op.drop_table('house_ledger')

    op.drop_index(op.f('ix_user_is_active'), table_name='user')
    op.drop_index(op.f('ix_user_username'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_table('user')
