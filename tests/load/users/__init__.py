"""Load test user personas."""

from tests.load.users.admin import AdminUser
from tests.load.users.ingest import IngestUser

__all__ = ["IngestUser", "AdminUser"]
