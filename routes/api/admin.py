# routes/api/admin.py
"""
Admin endpoints: contract templates, users, permissions and the activity log.
All routes require an active admin profile (X-User-Id header).
"""

from flask import g

from services import audit_service
from services.container import get_services
from services.contracts.exceptions import ValidationError
from services.contracts.types import UserRole
from . import api_bp
from .decorators import admin_required
from .helpers import get_json_body, success_response


def _require_bool(payload, key):
    value = payload.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false", field=key)
    return value


# =============================================================================
# CONTRACT TEMPLATES
# =============================================================================

@api_bp.route('/admin/templates', methods=['GET'])
@admin_required
def admin_list_templates():
    return success_response(get_services().repository.list_templates())


@api_bp.route('/admin/templates/<template_id>/active', methods=['PUT'])
@admin_required
def admin_toggle_template(template_id):
    is_active = _require_bool(get_json_body(), 'isActive')
    repository = get_services().repository

    template = repository.set_template_active(template_id, is_active)
    audit_service.log_contract_toggled(repository, g.current_user['id'], template_id, is_active)
    return success_response(template)


# =============================================================================
# USERS
# =============================================================================

@api_bp.route('/admin/users', methods=['GET'])
@admin_required
def admin_list_users():
    return success_response(get_services().repository.list_profiles())


@api_bp.route('/admin/users/<user_id>/role', methods=['PUT'])
@admin_required
def admin_change_role(user_id):
    role = UserRole.parse(get_json_body().get('role'))
    repository = get_services().repository

    profile = repository.update_profile(user_id, {'role': role.value})
    audit_service.log_role_changed(repository, g.current_user['id'], user_id, role.value)
    return success_response(profile)


@api_bp.route('/admin/users/<user_id>/active', methods=['PUT'])
@admin_required
def admin_toggle_user(user_id):
    is_active = _require_bool(get_json_body(), 'isActive')
    if user_id == g.current_user['id'] and not is_active:
        raise ValidationError("You cannot deactivate your own account", field='isActive')

    repository = get_services().repository
    profile = repository.update_profile(user_id, {'is_active': is_active})
    audit_service.log_user_access_toggled(repository, g.current_user['id'], user_id, is_active)
    return success_response(profile)


# =============================================================================
# PERMISSIONS & ACTIVITY
# =============================================================================

@api_bp.route('/admin/permissions', methods=['GET'])
@admin_required
def admin_list_permissions():
    return success_response(get_services().repository.list_permissions())


@api_bp.route('/admin/permissions', methods=['PUT'])
@admin_required
def admin_set_permission():
    """Body: {contractId, role, canAccess}"""
    payload = get_json_body()
    contract_id = payload.get('contractId')
    if not contract_id:
        raise ValidationError("contractId is required", field='contractId')
    role = UserRole.parse(payload.get('role'))
    can_access = _require_bool(payload, 'canAccess')

    repository = get_services().repository
    permission = repository.upsert_permission(contract_id, role, can_access)
    audit_service.log_permission_changed(
        repository, g.current_user['id'], contract_id, role.value, can_access
    )
    return success_response(permission)


@api_bp.route('/admin/activity', methods=['GET'])
@admin_required
def admin_recent_activity():
    """The 50 most recent activity log entries."""
    return success_response(get_services().repository.recent_activity())
