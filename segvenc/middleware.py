"""Middleware for identity and tenant context."""
from functools import wraps
from flask import session, g, jsonify, current_app
from segvenc.database import get_session


def load_user_and_tenant():
    """
    Load current user and tenant into g (Flask's per-request global).

    Called before each request. The authenticated identity is issued
    elsewhere and stored in the Flask session as ``auth_user_id`` (plus
    ``email`` and ``name``). On the first request of a new identity its
    company is provisioned.
    Sets g.user, g.tenant_id, and g.user_role if authenticated.
    """
    g.user = None
    g.tenant_id = None
    g.user_role = None

    auth_user_id = session.get('auth_user_id')
    if not auth_user_id:
        return

    db_session = get_session()
    if not db_session:
        return

    from segvenc.services.tenant_service import ensure_company_for_identity

    user = ensure_company_for_identity(
        db_session,
        auth_user_id=auth_user_id,
        email=session.get('email'),
        name=session.get('name'),
        default_company_name=current_app.config.get('DEFAULT_COMPANY_NAME', 'Nova Empresa'),
    )
    db_session.commit()

    if not user.active:
        current_app.logger.warning(f"Blocked inactive user {user.id}")
        return

    g.user = user
    g.tenant_id = user.company_id
    g.user_role = user.role


def require_login(f):
    """
    Decorator: Require an authenticated identity.

    Returns 401 JSON when there is none.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Autenticação necessária.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_tenant(f):
    """
    Decorator: Require a company context.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('tenant_id') is None:
            return jsonify({'status': 'error', 'message': 'Empresa não encontrada para este usuário.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator: Restrict access to specific roles.

    Usage:
        @require_role('admin')

    Must be used AFTER require_login and require_tenant.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user_role') not in allowed_roles:
                return jsonify({'status': 'error', 'message': 'Você não tem permissão para esta ação.'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def unsigned_calls_allowed():
    """Machine endpoints may skip their shared secret only in TESTING or DEBUG mode."""
    return bool(current_app.config.get('TESTING') or current_app.config.get('DEBUG'))
