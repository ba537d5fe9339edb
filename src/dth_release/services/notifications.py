"""Post-commit document + email side effects around state transitions."""

from concurrent.futures import Executor, Future
from datetime import datetime
from typing import Any, Optional

import structlog
from jinja2 import Environment, PackageLoader, select_autoescape

from ..clock import format_display_time, format_document_time, utc_now
from ..models import Load, NotificationEvent
from .documents import DocumentGenerator
from .mailer import Attachment, Mailer

logger = structlog.get_logger(__name__)


TEMPLATES = {
    NotificationEvent.CREATED: "load_created.html",
    NotificationEvent.VALIDATED: "load_validated.html",
    NotificationEvent.RELEASED: "vehicle_released.html",
}

SUBJECTS = {
    NotificationEvent.CREATED: "Load Created: {load_id} - {app_name}",
    NotificationEvent.VALIDATED: "Load Validated: {load_id} - {app_name}",
    NotificationEvent.RELEASED: "Vehicle Released: {load_id} - {app_name}",
}


class NotificationDispatcher:
    """
    Generates the release document and mails it after a transition commits.

    ``dispatch`` never raises: every failure is logged as
    ``notification_failed`` and swallowed, since the transition it follows is
    already durable. ``submit`` hands ``dispatch`` to the executor owned by
    the process entry point, or runs it inline when there is none.
    """

    def __init__(
        self,
        mailer: Mailer,
        documents: DocumentGenerator,
        dispatch_email: str,
        app_name: str = "DTH Logistics",
        timezone: str = "UTC",
        primary_color: str = "#ED2939",
        executor: Optional[Executor] = None,
    ):
        self.mailer = mailer
        self.documents = documents
        self.dispatch_email = dispatch_email
        self.app_name = app_name
        self.timezone = timezone
        self.primary_color = primary_color
        self.executor = executor
        self.templates = Environment(
            loader=PackageLoader("dth_release", "templates/emails"),
            autoescape=select_autoescape(["html"]),
        )

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, event: NotificationEvent, load: Load, **context: Any) -> Optional[Future]:
        """Queue a notification. Returns the future when an executor is used."""
        if self.executor is None:
            self.dispatch(event, load, **context)
            return None

        try:
            return self.executor.submit(self.dispatch, event, load, **context)
        except RuntimeError:
            # Executor already shut down
            logger.error(
                "notification_failed",
                notification=event.value,
                load_id=load.load_id,
                exc_info=True,
            )
            return None

    # =========================================================================
    # Delivery
    # =========================================================================

    def resolve_recipient(self, event: NotificationEvent, load: Load, context: dict) -> Optional[str]:
        if event == NotificationEvent.VALIDATED:
            return self.dispatch_email
        if event == NotificationEvent.CREATED:
            return context.get("recipient") or load.dispatcher_email
        return load.dispatcher_email

    def render(self, event: NotificationEvent, load: Load, context: dict) -> tuple[str, str]:
        """Build subject and HTML body for ``event``."""
        confirmed_at: Optional[datetime] = context.get("confirmed_at")
        template = self.templates.get_template(TEMPLATES[event])
        html = template.render(
            load=load,
            app_name=self.app_name,
            primary_color=self.primary_color,
            current_year=utc_now().year,
            window_start=format_document_time(load.pickup_window_start, self.timezone),
            window_end=format_document_time(load.pickup_window_end, self.timezone),
            dispatcher_name=load.dispatcher_name or "Dispatcher",
            confirmed_by=context.get("confirmed_by"),
            confirmed_at=format_display_time(confirmed_at, self.timezone) if confirmed_at else "N/A",
        )
        subject = SUBJECTS[event].format(load_id=load.load_id, app_name=self.app_name)
        return subject, html

    def _attachments(self, event: NotificationEvent, load: Load) -> list[Attachment]:
        try:
            content = self.documents.generate(load, self.timezone)
        except Exception:
            # Mail still goes out without the document
            logger.error(
                "document_generation_failed",
                notification=event.value,
                load_id=load.load_id,
                exc_info=True,
            )
            return []
        return [Attachment(filename=f"DTH_Release_{load.load_id}.pdf", content=content)]

    def dispatch(self, event: NotificationEvent, load: Load, **context: Any) -> Optional[dict]:
        """Generate and send one notification. Never raises."""
        try:
            recipient = self.resolve_recipient(event, load, context)
            if not recipient:
                logger.info(
                    "notification_skipped",
                    notification=event.value,
                    load_id=load.load_id,
                    reason="no_recipient",
                )
                return None

            attachments = self._attachments(event, load)
            subject, html = self.render(event, load, context)
            result = self.mailer.send(recipient, subject, html, attachments)

            logger.info(
                "notification_sent",
                notification=event.value,
                load_id=load.load_id,
                to=recipient,
                message_id=(result or {}).get("messageId"),
            )
            return result

        except Exception:
            logger.error(
                "notification_failed",
                notification=event.value,
                load_id=load.load_id,
                exc_info=True,
            )
            return None
