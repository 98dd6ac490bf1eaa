"""
Audit Service - Activity log entries for admin and workflow actions.

Provides helper functions to write activity_log rows consistently.
Logging an activity never fails the action that triggered it: backend
errors are logged and swallowed here.
"""

import logging

from flask import request

from services.contracts.exceptions import RepositoryError

logger = logging.getLogger(__name__)

# Actions
CONTRACT_TOGGLE = 'contract_toggle'
ROLE_CHANGE = 'role_change'
USER_ACCESS_TOGGLE = 'user_access_toggle'
PERMISSION_CHANGE = 'permission_change'

# Resource types
CONTRACT_TEMPLATE = 'contract_template'
USER_PROFILE = 'user_profile'
CONTRACT_PERMISSION = 'contract_permission'


def get_request_context():
    """
    Extract IP address and user agent from the current request.
    Returns (ip_address, user_agent) tuple.
    """
    ip_address = None
    user_agent = None

    try:
        if request:
            # Get IP, handling proxies
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()

            user_agent = request.headers.get('User-Agent', '')[:500]
    except RuntimeError:
        # Outside of request context
        pass

    return ip_address, user_agent


def log_activity(repository, user_id, action, resource_type, resource_id=None, details=None):
    """
    Write an activity_log entry.

    Args:
        repository: ContractRepository used for the insert
        user_id: Acting user's id
        action: One of the action constants above
        resource_type: One of the resource type constants above
        resource_id: Id of the affected record
        details: Dict of additional context

    Returns:
        The inserted row, or None if logging failed
    """
    ip_address, user_agent = get_request_context()

    record = {
        'user_id': user_id,
        'action': action,
        'resource_type': resource_type,
        'resource_id': resource_id,
        'details': details or {},
        'ip_address': ip_address,
        'user_agent': user_agent
    }

    try:
        return repository.insert_activity(record)
    except RepositoryError as e:
        logger.error(f"Error logging activity {action} on {resource_type} {resource_id}: {e}")
        return None


def log_contract_toggled(repository, user_id, template_id, is_active):
    """Log when a contract template is enabled or disabled."""
    return log_activity(
        repository, user_id, CONTRACT_TOGGLE, CONTRACT_TEMPLATE, template_id,
        {'is_active': is_active}
    )


def log_role_changed(repository, user_id, target_user_id, new_role):
    """Log when a user's role changes."""
    return log_activity(
        repository, user_id, ROLE_CHANGE, USER_PROFILE, target_user_id,
        {'new_role': new_role}
    )


def log_user_access_toggled(repository, user_id, target_user_id, is_active):
    """Log when a user's access is enabled or disabled."""
    return log_activity(
        repository, user_id, USER_ACCESS_TOGGLE, USER_PROFILE, target_user_id,
        {'is_active': is_active}
    )


def log_permission_changed(repository, user_id, contract_id, role, can_access):
    """Log when a (contract, role) permission is set."""
    return log_activity(
        repository, user_id, PERMISSION_CHANGE, CONTRACT_PERMISSION, contract_id,
        {'role': role, 'can_access': can_access}
    )
