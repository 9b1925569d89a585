from functools import wraps
from flask import request, jsonify, current_app
from flask_jwt_extended import current_user

from fairdice_be.exceptions import AuthorizationException
from fairdice_be.services.access_control import get_access_control

def service_token_required(f):
    """
    Decorator to protect routes with a service API token.
    Expects the token to be passed in the 'X-Service-Token' header.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.headers.get('X-Service-Token')
        if not token:
            current_app.logger.warning("Service token missing for protected route.")
            return jsonify({'status': False, 'status_message': 'Service token required.'}), 401

        expected_token = current_app.config.get('SERVICE_API_TOKEN')
        if not expected_token:
            current_app.logger.error("SERVICE_API_TOKEN is not configured in the application.")
            return jsonify({'status': False, 'status_message': 'Internal server error: Service token not configured.'}), 500

        if token == expected_token:
            return f(*args, **kwargs)
        current_app.logger.warning("Invalid service token received.")
        return jsonify({'status': False, 'status_message': 'Invalid service token.'}), 403
    return decorated_function

def role_required(role):
    """
    Decorator for JWT protected routes that need a capability: 'admin',
    'funds_controller' or 'oracle'. Must be applied below @jwt_required().
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check = getattr(get_access_control(), f"is_{role}")
            if not current_user or not check(current_user):
                current_app.logger.warning(
                    f"User {getattr(current_user, 'id', None)} denied access to {request.endpoint}: missing role '{role}'."
                )
                raise AuthorizationException(
                    status_message=f"This action requires the {role.replace('_', ' ')} role.",
                    details={'role': role}
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator
