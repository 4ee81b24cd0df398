# Overview: Request context and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .extensions import db
from .models import Tenant, User


def _header_int(name: str) -> int | None:
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_tenant(f):
    """
    Establish tenant and user context forwarded by the auth gateway.

    Authentication happens upstream. The gateway forwards:
    - X-Tenant-Id: the authenticated tenant
    - X-User-Id: the authenticated user within that tenant

    Sets the following Flask g attributes:
    - g.current_user: The active User row
    - g.tenant_id: The tenant ID - REQUIRED for every query

    Returns 401 if either header is missing or malformed, the tenant is
    inactive, or the user is missing, inactive or belongs to another tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = _header_int("X-Tenant-Id")
        user_id = _header_int("X-User-Id")

        if tenant_id is None or user_id is None:
            return jsonify({"error": "Tenant context required"}), 401

        tenant = db.session.query(Tenant).filter_by(id=tenant_id, is_active=True).first()
        if not tenant:
            return jsonify({"error": "Unknown or inactive tenant"}), 401

        user = db.session.query(User).filter_by(id=user_id, tenant_id=tenant_id, is_active=True).first()
        if not user:
            current_app.logger.warning(
                "Rejected request for user_id=%s tenant_id=%s on %s %s",
                user_id, tenant_id, request.method, request.path,
            )
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        g.tenant_id = tenant_id

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the current user to hold one of the given roles.

    Must be applied after @require_tenant.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Tenant context required"}), 401
            if user.role not in roles:
                return jsonify({
                    "error": "Role not permitted",
                    "required_roles": list(roles),
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
