from engagement.models.audit import AuditLog
from engagement.letters.models import Client, EngagementLetter

__all__ = [
    "AuditLog",
    "Client",
    "EngagementLetter",
]
