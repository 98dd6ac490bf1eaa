# routes/api/__init__.py
"""
JSON API Routes Package

This package splits the API routes into logical modules:
- errors.py: Exception -> JSON envelope handlers
- customers.py: Customer CRUD and document stats
- documents.py: Document list/detail/update and status changes
- signnow.py: Upload (fill + dispatch), document actions, bulk status, webhook
- sms.py: Send a text message (signing links)
- contracts.py: Available contracts and direct PDF fill
- admin.py: Template, user, permission and activity administration
"""

from flask import Blueprint

# Create the blueprint - all sub-modules will register routes on this
api_bp = Blueprint('api', __name__, url_prefix='/api')

# Import all route modules AFTER blueprint creation
# Each module imports api_bp and registers routes on it
from . import errors
from . import customers
from . import documents
from . import signnow
from . import sms
from . import contracts
from . import admin
