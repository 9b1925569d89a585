from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from passlib.hash import pbkdf2_sha256 as sha256
from sqlalchemy import BigInteger, Index, JSON

db = SQLAlchemy()

class BetState:
    CLEAN = 'clean'
    ACTIVE = 'active'
    PROCESSED = 'processed'

class BetEventType:
    COMMIT = 'commit'
    PAYMENT = 'payment'
    FAILED_PAYMENT = 'failed_payment'
    JACKPOT_PAYMENT = 'jackpot_payment'

class TransactionStatus:
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'

class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password = db.Column(db.String(255), nullable=False)
    balance = db.Column(BigInteger, default=0, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    is_funds_controller = db.Column(db.Boolean, default=False, nullable=False)
    is_oracle = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    transactions = db.relationship('Transaction', backref='user', lazy=True)
    bets = db.relationship('Bet', back_populates='owner', lazy='dynamic')

    def check_password(self, password):
        return sha256.verify(password, self.password)

    @staticmethod
    def hash_password(password):
        return sha256.hash(password)

    def __repr__(self):
        return f"<User {self.username}>"

class Transaction(db.Model):
    __tablename__ = 'transaction'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    amount = db.Column(BigInteger, nullable=False)
    transaction_type = db.Column(db.String(50), nullable=False, index=True)
    status = db.Column(db.String(50), default=TransactionStatus.PENDING, nullable=False, index=True)
    bet_commit = db.Column(db.String(64), nullable=True, index=True) # commit of the related bet, if any
    details = db.Column(JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<Transaction {self.id} (User: {self.user_id}, Type: {self.transaction_type}, Amount: {self.amount})>"

class Bet(db.Model):
    """
    A dice bet keyed by its commitment.

    The lifecycle state is encoded by ``amount`` and ``owner_id`` alone:
    clean (no owner), active (owner and a live amount) and processed
    (owner, amount zeroed). ``wager_amount`` keeps the stake for history.
    """
    __tablename__ = 'dice_bet'
    commit = db.Column(db.String(64), primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    amount = db.Column(BigInteger, default=0, nullable=False)
    wager_amount = db.Column(BigInteger, default=0, nullable=False)
    modulo = db.Column(db.Integer, nullable=False)
    roll_under = db.Column(db.Integer, nullable=False)
    mask = db.Column(db.String(64), nullable=False) # hex, up to 253 bits
    placed_at_height = db.Column(BigInteger, nullable=False, index=True)
    commit_deadline = db.Column(BigInteger, nullable=False)
    win_amount = db.Column(BigInteger, nullable=False)
    reserved_amount = db.Column(BigInteger, nullable=False) # larger of win_amount and the stake
    jackpot_fee = db.Column(BigInteger, default=0, nullable=False)

    # Settlement audit trail, filled when the bet is processed
    reveal = db.Column(db.String(64), nullable=True)
    outcome = db.Column(db.Integer, nullable=True)
    payout = db.Column(BigInteger, nullable=True)
    jackpot_win = db.Column(BigInteger, nullable=True)
    settled_at_height = db.Column(BigInteger, nullable=True)
    is_refund = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship('User', back_populates='bets')

    __table_args__ = (
        Index('ix_dice_bet_owner_created', 'owner_id', 'created_at'),
    )

    @property
    def state(self):
        if self.owner_id is None:
            return BetState.CLEAN
        if self.amount > 0:
            return BetState.ACTIVE
        return BetState.PROCESSED

    @property
    def mask_value(self):
        return int(self.mask, 16)

    def __repr__(self):
        return f"<Bet {self.commit[:12]}.. (Owner: {self.owner_id}, Amount: {self.amount}, State: {self.state})>"

class HouseLedger(db.Model):
    """Singleton row with the custodied balance and the two aggregate reserves."""
    __tablename__ = 'house_ledger'
    id = db.Column(db.Integer, primary_key=True)
    balance = db.Column(BigInteger, default=0, nullable=False)
    locked_in_bets = db.Column(BigInteger, default=0, nullable=False)
    jackpot_size = db.Column(BigInteger, default=0, nullable=False)
    max_profit = db.Column(BigInteger, default=0, nullable=False)
    oracle_address = db.Column(db.String(66), nullable=True)
    paused = db.Column(db.Boolean, default=False, nullable=False)
    upgrade_redirect = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    @property
    def committed(self):
        return self.locked_in_bets + self.jackpot_size

    @property
    def available(self):
        return self.balance - self.committed

    def __repr__(self):
        return f"<HouseLedger balance={self.balance} locked={self.locked_in_bets} jackpot={self.jackpot_size}>"

class BetEvent(db.Model):
    __tablename__ = 'bet_event'
    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(32), nullable=False, index=True)
    commit = db.Column(db.String(64), nullable=True, index=True)
    beneficiary_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    amount = db.Column(BigInteger, default=0, nullable=False)
    details = db.Column(JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<BetEvent {self.id} ({self.event_type}, Commit: {self.commit}, Amount: {self.amount})>"

class ChainBlock(db.Model):
    __tablename__ = 'chain_block'
    height = db.Column(BigInteger, primary_key=True, autoincrement=False)
    block_hash = db.Column(db.String(64), unique=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<ChainBlock {self.height} {self.block_hash[:12]}..>"

class TokenBlacklist(db.Model):
    __tablename__ = 'token_blacklist'
    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<TokenBlacklist {self.jti}>"
