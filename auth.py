"""
User Authentication and Authorization Module
Handles login, session management and role checks for both apps:

- Pipeline users (organization-scoped; roles agent, relationship_manager, master_admin)
- Auto shop staff (shop-scoped; roles owner, manager, advisor, technician)

Both use Flask's signed session cookie. Auto shop keys are prefixed
``auto_`` so one browser can hold both logins.
"""
import hmac
import logging
from datetime import datetime
from functools import wraps

from flask import session, jsonify, request, current_app
from werkzeug.security import generate_password_hash, check_password_hash

logger = logging.getLogger(__name__)


def safe_generate_password_hash(password):
    """Generate password hash using pbkdf2 for compatibility"""
    return generate_password_hash(password, method='pbkdf2:sha256')


def safe_check_password_hash(pwhash, password):
    if not pwhash or not password:
        return False
    return check_password_hash(pwhash, password)


# Pipeline roles
PIPELINE_ROLES = {
    'agent': 'Agent',
    'relationship_manager': 'Relationship Manager',
    'master_admin': 'Master Admin',
}

# Auto shop roles
AUTO_ROLES = {
    'owner': 'Owner',
    'manager': 'Manager',
    'advisor': 'Service Advisor',
    'technician': 'Technician',
}
AUTO_MANAGER_ROLES = ('owner', 'manager')


# ============================================================================
# PIPELINE USERS
# ============================================================================

def authenticate_user(db_session, identifier, password):
    """
    Authenticate a pipeline user by username or email.

    Returns:
        (User, None) on success, (None, error message) otherwise
    """
    from database.models import User

    if not identifier or not password:
        return None, "Username and password are required"

    identifier = identifier.strip().lower()
    user = db_session.query(User).filter(
        (User.username == identifier) | (User.email == identifier)
    ).first()

    if not user or not safe_check_password_hash(user.password_hash, password):
        return None, "Invalid username or password"

    if not user.is_active:
        return None, "Account is deactivated"

    user.last_login = datetime.utcnow()
    logger.info(f"User authenticated: {user.username}")
    return user, None


def login_user(user):
    """Set pipeline user session"""
    session['user_id'] = user.id
    session['organization_id'] = user.organization_id
    session['user_name'] = user.username
    session['user_display_name'] = user.display_name
    session['user_role'] = user.role
    session.permanent = True


def logout_user():
    """Clear pipeline user session keys"""
    for key in ('user_id', 'organization_id', 'user_name', 'user_display_name', 'user_role'):
        session.pop(key, None)


def is_authenticated():
    """Check if a pipeline user is logged in"""
    return 'user_id' in session


def current_user_context():
    """(organization_id, user_id, role) of the logged in pipeline user"""
    return session.get('organization_id'), session.get('user_id'), session.get('user_role')


def has_role(*roles):
    if not is_authenticated():
        return False
    return session.get('user_role') in roles


# Decorators for route protection
def login_required(f):
    """Decorator to require a pipeline login for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """Decorator to require one of the given pipeline roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return jsonify({'error': 'Authentication required'}), 401

            if not has_role(*roles):
                return jsonify({'error': 'Permission denied', 'required': list(roles)}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


# ============================================================================
# AUTO SHOP USERS
# ============================================================================

def authenticate_auto_user(db_session, email, password):
    """
    Authenticate shop staff by email and password.

    Returns:
        (AutoUser, None) on success, (None, error message) otherwise
    """
    from database.auto_models import AutoUser

    if not email or not password:
        return None, "Email and password are required"

    candidates = db_session.query(AutoUser).filter(
        AutoUser.email == email.strip().lower()
    ).all()
    user = next((u for u in candidates if safe_check_password_hash(u.password_hash, password)), None)

    if not user:
        return None, "Invalid email or password"

    if not user.is_active:
        return None, "Account is deactivated"

    user.last_login_at = datetime.utcnow()
    logger.info(f"Auto shop user authenticated: {user.email} (shop {user.shop_id})")
    return user, None


def login_auto_user(user):
    """Set auto shop session"""
    session['auto_user_id'] = user.id
    session['auto_shop_id'] = user.shop_id
    session['auto_role'] = user.role
    session.permanent = True


def logout_auto_user():
    for key in ('auto_user_id', 'auto_shop_id', 'auto_role'):
        session.pop(key, None)


def is_auto_authenticated():
    return 'auto_user_id' in session


def current_auto_context():
    """(shop_id, user_id, role) of the logged in shop user"""
    return session.get('auto_shop_id'), session.get('auto_user_id'), session.get('auto_role')


def auto_login_required(f):
    """Decorator to require a shop login for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_auto_authenticated():
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def auto_role_required(*roles):
    """Decorator to require one of the given shop roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_auto_authenticated():
                return jsonify({'error': 'Authentication required'}), 401

            if session.get('auto_role') not in roles:
                return jsonify({'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_key_or_master_required(f):
    """
    Decorator for platform administration: a pipeline master admin session
    or a matching ``X-Admin-Key`` header.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('ADMIN_API_KEY')
        provided = request.headers.get('X-Admin-Key', '')
        if expected and provided and hmac.compare_digest(expected, provided):
            return f(*args, **kwargs)

        if not is_authenticated():
            return jsonify({'error': 'Authentication required'}), 401
        if not has_role('master_admin'):
            return jsonify({'error': 'Admin permission required'}), 403

        return f(*args, **kwargs)
    return decorated_function
