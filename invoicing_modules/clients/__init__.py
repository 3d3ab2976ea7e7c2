"""
Clients Module.

Billed clients: validation, CRUD, and the snapshot fields documents copy.
"""

from invoicing_modules.clients.models import Client
from invoicing_modules.clients.service import ClientService, is_valid_email

__all__ = [
    "Client",
    "ClientService",
    "is_valid_email",
]
