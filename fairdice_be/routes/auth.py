from flask import Blueprint, request, jsonify, current_app, make_response
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required, get_jwt,
    current_user, set_access_cookies, set_refresh_cookies, unset_jwt_cookies
)
from datetime import datetime, timezone
from sqlalchemy import select

from fairdice_be.models import db, User
from fairdice_be.schemas import UserSchema, RegisterSchema, LoginSchema
from fairdice_be.exceptions import AuthenticationException, ValidationException
from fairdice_be.utils.auth import revoke_token
from fairdice_be.utils.security_logger import SecurityLogger

auth_bp = Blueprint('auth', __name__, url_prefix='/api')

def _token_response(user, status_code):
    access_token = create_access_token(identity=user)
    refresh_token = create_refresh_token(identity=user)
    response = make_response(jsonify({
        'status': True,
        'user': UserSchema().dump(user),
        'access_token': access_token
    }), status_code)
    set_access_cookies(response, access_token)
    set_refresh_cookies(response, refresh_token)
    return response

@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    return jsonify({'status': True, 'user': UserSchema().dump(current_user)}), 200

@auth_bp.route('/register', methods=['POST'])
def register():
    # ValidationError is rendered by the global handler
    validated_data = RegisterSchema().load(request.get_json() or {})

    if db.session.scalar(select(User).filter_by(username=validated_data['username'])):
        raise ValidationException(
            status_message="Username already taken.",
            details={'username': 'Username already taken.'}
        )
    if db.session.scalar(select(User).filter_by(email=validated_data['email'])):
        raise ValidationException(
            status_message="Email already registered.",
            details={'email': 'Email already exists.'}
        )

    try:
        new_user = User(
            username=validated_data['username'],
            email=validated_data['email'],
            password=User.hash_password(validated_data['password'])
        )
        db.session.add(new_user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    SecurityLogger.log_authentication_event('register', user_id=new_user.id, username=new_user.username)
    current_app.logger.info(f"User registered: {new_user.username} (ID: {new_user.id})")
    return _token_response(new_user, 201)

@auth_bp.route('/login', methods=['POST'])
def login():
    validated_data = LoginSchema().load(request.get_json() or {})

    user = db.session.scalar(select(User).filter_by(username=validated_data['username']))
    if not user or not user.is_active or not user.check_password(validated_data['password']):
        SecurityLogger.log_authentication_event(
            'login', username=validated_data['username'], success=False
        )
        raise AuthenticationException(status_message="Invalid username or password.")

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()

    SecurityLogger.log_authentication_event('login', user_id=user.id, username=user.username)
    return _token_response(user, 200)

@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    new_access_token = create_access_token(identity=current_user)
    response = make_response(jsonify({'status': True, 'access_token': new_access_token}), 200)
    set_access_cookies(response, new_access_token)
    return response

@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    try:
        revoke_token(get_jwt())
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    response = make_response(jsonify({
        "status": True,
        "status_message": "Successfully logged out"
    }), 200)
    unset_jwt_cookies(response)

    current_app.logger.info(f"User logged out: {current_user.username} (ID: {current_user.id})")
    return response
