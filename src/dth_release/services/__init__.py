"""Domain services for the DTH vehicle release portal."""

from .documents import DocumentGenerator, ReleaseDocumentGenerator
from .gateway import VerificationGateway
from .identifiers import IdentifierGenerator
from .loads import LoadService
from .mailer import Attachment, Mailer, SmtpMailer
from .notifications import NotificationDispatcher
from .release import ReleaseStateMachine

__all__ = [
    "Attachment",
    "DocumentGenerator",
    "IdentifierGenerator",
    "LoadService",
    "Mailer",
    "NotificationDispatcher",
    "ReleaseDocumentGenerator",
    "ReleaseStateMachine",
    "SmtpMailer",
    "VerificationGateway",
]
