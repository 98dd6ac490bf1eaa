# routes/api/customers.py
"""
Customer API endpoints.
"""

from flask import current_app, request

from services.container import get_services
from services.contracts.repository import DEFAULT_PAGE_SIZE, page_bounds
from . import api_bp
from .helpers import get_json_body, pagination, success_response


@api_bp.route('/customers', methods=['GET'])
def list_customers():
    """List customers, newest first (?page, ?limit, ?q)."""
    page, limit = page_bounds(request.args.get('page', 1), request.args.get('limit', DEFAULT_PAGE_SIZE))
    rows, total = get_services().repository.list_customers(page, limit, request.args.get('q'))
    return success_response(rows, pagination=pagination(page, limit, total))


@api_bp.route('/customers', methods=['POST'])
def create_customer():
    customer = get_services().repository.create_customer(get_json_body())
    current_app.logger.info(f"Customer created: {customer.get('id')}")
    return success_response(customer, 201)


@api_bp.route('/customers/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    """A customer with their documents."""
    return success_response(get_services().repository.get_customer(customer_id))


@api_bp.route('/customers/<customer_id>/stats', methods=['GET'])
def get_customer_stats(customer_id):
    """Document counts per status for a customer."""
    return success_response(get_services().repository.customer_document_stats(customer_id))


@api_bp.route('/customers/<customer_id>', methods=['PUT'])
def update_customer(customer_id):
    customer = get_services().repository.update_customer(customer_id, get_json_body())
    return success_response(customer)


@api_bp.route('/customers/<customer_id>', methods=['DELETE'])
def delete_customer(customer_id):
    get_services().repository.delete_customer(customer_id)
    current_app.logger.info(f"Customer deleted: {customer_id}")
    return success_response({'id': customer_id, 'deleted': True})
