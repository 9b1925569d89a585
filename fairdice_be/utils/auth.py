from datetime import datetime, timezone

from flask import current_app, g
from sqlalchemy import select, delete

from fairdice_be.models import db, User, TokenBlacklist

def user_identity_lookup(user):
    return str(user.id)

def user_lookup_callback(_jwt_header, jwt_data):
    identity = jwt_data["sub"]
    return db.session.get(User, int(identity))

def check_if_token_in_blacklist(jwt_header, jwt_payload):
    jti = jwt_payload['jti']
    token = db.session.scalar(select(TokenBlacklist.id).filter_by(jti=jti))
    if token is not None:
        current_app.logger.warning(f"Request ID: {g.get('request_id', 'N/A')} - Blocked blacklisted token: {jti}")
    return token is not None

def revoke_token(jwt_payload):
    """Adds the token's jti to the blacklist. Caller commits."""
    expires_at = None
    if jwt_payload.get('exp'):
        expires_at = datetime.fromtimestamp(jwt_payload['exp'], tz=timezone.utc)
    db.session.add(TokenBlacklist(jti=jwt_payload['jti'], expires_at=expires_at))

def purge_expired_tokens(now=None):
    """Deletes blacklist entries whose token has expired anyway. Returns the number removed."""
    now = now or datetime.now(timezone.utc)
    result = db.session.execute(delete(TokenBlacklist).where(TokenBlacklist.expires_at < now))
    db.session.commit()
    return result.rowcount

def register_jwt_handlers(jwt):
    jwt.user_identity_loader(user_identity_lookup)
    jwt.user_lookup_loader(user_lookup_callback)
    jwt.token_in_blocklist_loader(check_if_token_in_blacklist)
