from marshmallow import Schema, fields, ValidationError, validates_schema
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow.validate import Length, Range
import re

from .models import db, User, Bet, BetEvent, HouseLedger, ChainBlock
from .utils.security import is_password_strong

HEX_RE = re.compile(r'^(0x)?[0-9a-fA-F]*$')

# --- Validators ---
def validate_username(username):
    if len(username) < 3 or len(username) > 30:
        raise ValidationError('Username must be between 3 and 30 characters.')
    if not re.match(r'^[a-zA-Z0-9_]+$', username):
        raise ValidationError('Username can only contain letters, numbers, and underscores.')
    reserved = ['admin', 'root', 'administrator', 'oracle', 'house', 'system', 'null', 'undefined']
    if username.lower() in reserved:
        raise ValidationError('This username is reserved.')

def validate_password(password):
    is_strong, message = is_password_strong(password)
    if not is_strong:
        raise ValidationError(message)

def hex_bytes(n_bytes=None):
    """Validator for hex strings, optionally of an exact byte length."""
    def validator(value):
        if not HEX_RE.match(value) or len(value.removeprefix('0x')) % 2:
            raise ValidationError('Must be an even-length hex string.')
        if n_bytes is not None and len(value.removeprefix('0x')) != n_bytes * 2:
            raise ValidationError(f'Must be exactly {n_bytes} bytes of hex.')
    return validator

# --- Custom Fields ---
class SelectorField(fields.Field):
    """Outcome selector: a JSON integer or a 0x-prefixed hex string for masks wider than JSON numbers."""
    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool):
            raise ValidationError('Selector must be an integer or hex string.')
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value, 16) if value.lower().startswith('0x') else int(value)
            except ValueError:
                pass
        raise ValidationError('Selector must be an integer or hex string.')

    def _serialize(self, value, attr, obj, **kwargs):
        return None if value is None else hex(value)

class Amount(fields.Integer):
    """Amount in satoshi-like minor units"""
    def __init__(self, **kwargs):
        kwargs.setdefault('validate', Range(min=1, error='Amount must be positive.'))
        super().__init__(strict=True, **kwargs)

# --- User Schemas ---
class UserSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = User
        load_instance = True
        sqla_session = db.session
        exclude = ("password",)

    id = auto_field(dump_only=True)
    balance = auto_field(dump_only=True, metadata={"description": "Balance in Satoshis"})
    is_admin = auto_field(dump_only=True)
    is_funds_controller = auto_field(dump_only=True)
    is_oracle = auto_field(dump_only=True)
    is_active = auto_field(dump_only=True)
    created_at = auto_field(dump_only=True)
    last_login_at = auto_field(dump_only=True)

    balance_btc = fields.Method("get_balance_btc", dump_only=True)

    def get_balance_btc(self, obj):
        return f"{obj.balance / 100000000:.8f}"

class RegisterSchema(Schema):
    username = fields.Str(required=True, validate=validate_username)
    email = fields.Email(required=True, validate=Length(max=120))
    password = fields.Str(required=True, validate=validate_password)

    @validates_schema
    def validate_registration_data(self, data, **kwargs):
        if data['username'].lower() in data['email'].lower():
            raise ValidationError('Username cannot be part of email address.')

class LoginSchema(Schema):
    username = fields.Str(required=True, validate=Length(min=1, max=50))
    password = fields.Str(required=True, validate=Length(min=1, max=200))

# --- Dice Schemas ---
class PlaceBetSchema(Schema):
    commit = fields.Str(required=True, validate=hex_bytes(32))
    modulo = fields.Int(required=True, strict=True)
    selector = SelectorField(required=True)
    amount = Amount(required=True)
    commit_deadline = fields.Int(required=True, strict=True, validate=Range(min=0))
    signature = fields.Str(required=True, validate=[Length(min=2, max=200), hex_bytes()])

class QuoteSchema(Schema):
    modulo = fields.Int(required=True, strict=True)
    selector = SelectorField(required=True)
    amount = Amount(required=True)

class VerifySchema(Schema):
    reveal = fields.Str(required=True, validate=hex_bytes(32))
    block_hash = fields.Str(required=True, validate=hex_bytes(32))
    modulo = fields.Int(required=True, strict=True)
    selector = SelectorField(required=True)
    amount = Amount(required=True)

class BetSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Bet
        include_fk = True

    state = fields.Str(dump_only=True)
    selector = fields.Method("get_selector", dump_only=True)

    def get_selector(self, obj):
        return hex(obj.mask_value)

class BetEventSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = BetEvent
        include_fk = True

class BetHistorySchema(Schema):
    bets = fields.Nested(BetSchema, many=True)
    page = fields.Int()
    pages = fields.Int()
    per_page = fields.Int()
    total = fields.Int()

# --- Oracle Schemas ---
class SettleSchema(Schema):
    reveal = fields.Str(required=True, validate=hex_bytes(32))
    block_hash = fields.Str(required=True, validate=hex_bytes(32))

class RefundSchema(Schema):
    commit = fields.Str(required=True, validate=hex_bytes(32))

# --- House Schemas ---
class HouseLedgerSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = HouseLedger
        exclude = ("id",)

    available = fields.Int(dump_only=True)

class PublicHouseSchema(Schema):
    jackpot_size = fields.Int()
    max_profit = fields.Int()
    paused = fields.Bool()
    oracle_address = fields.Str(allow_none=True)
    upgrade_redirect = fields.Str(allow_none=True)

class MaxProfitSchema(Schema):
    max_profit = fields.Int(required=True, strict=True, validate=Range(min=0))

class OracleAddressSchema(Schema):
    oracle_address = fields.Str(required=True, validate=hex_bytes(33))

class UpgradeRedirectSchema(Schema):
    upgrade_redirect = fields.Str(required=True, allow_none=True, validate=Length(max=255))

class HouseAmountSchema(Schema):
    amount = Amount(required=True)

class WithdrawFundsSchema(Schema):
    beneficiary_id = fields.Int(required=True, strict=True)
    amount = Amount(required=True)

# --- Chain Schemas ---
class ChainBlockSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = ChainBlock

class MineBlocksSchema(Schema):
    count = fields.Int(load_default=1, strict=True, validate=Range(min=1, max=1000))
