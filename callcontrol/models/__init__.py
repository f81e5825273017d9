from callcontrol.models.organization import Organization
from callcontrol.models.user import User
from callcontrol.models.audit_log import AuditLog
from callcontrol.models.call import Call, CallStatus, ProcessingStep
from callcontrol.models.telfin import TelfinCall, TelfinCallStatus, TelfinConnection
from callcontrol.models.telegram import TelegramLink, TelegramSession

__all__ = [
    "Organization",
    "User",
    "AuditLog",
    "Call",
    "CallStatus",
    "ProcessingStep",
    "TelfinCall",
    "TelfinCallStatus",
    "TelfinConnection",
    "TelegramLink",
    "TelegramSession",
]
