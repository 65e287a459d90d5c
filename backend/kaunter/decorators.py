# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import identity_service


def require_company_user(f):
    """
    Require a resolved principal that belongs to a company.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.principal: the (user_id, role, company_id) triple
    - g.company_id: the tenant every query in the route must be scoped to

    Returns 401 when no principal can be resolved and 403 when the principal
    is not assigned to a company (e.g. an unassigned super admin).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = identity_service.resolve_principal(request)

        if not principal:
            return jsonify({"error": "Authentication required"}), 401

        if not principal.company_id:
            return jsonify({"error": "User must be assigned to a company"}), 403

        g.principal = principal
        g.company_id = principal.company_id

        return f(*args, **kwargs)

    return decorated_function
