"""Explicit construction of the service graph, owned by the process entry point."""

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .clock import utc_now
from .config import Settings
from .db import Repository
from .services import (
    DocumentGenerator,
    IdentifierGenerator,
    LoadService,
    Mailer,
    NotificationDispatcher,
    ReleaseDocumentGenerator,
    ReleaseStateMachine,
    SmtpMailer,
    VerificationGateway,
)


@dataclass
class AppContext:
    """Everything one process needs. Close it on shutdown."""
    settings: Settings
    repository: Repository
    mailer: Mailer
    documents: DocumentGenerator
    notifier: NotificationDispatcher
    identifiers: IdentifierGenerator
    state_machine: ReleaseStateMachine
    loads: LoadService
    gateway: VerificationGateway
    executor: Optional[Executor] = None
    _owns_executor: bool = field(default=False, repr=False)

    def close(self) -> None:
        """Drain queued notifications, then release database connections."""
        if self.executor is not None and self._owns_executor:
            self.executor.shutdown(wait=True)
        self.repository.dispose()


def build_context(
    settings: Settings,
    *,
    mailer: Optional[Mailer] = None,
    documents: Optional[DocumentGenerator] = None,
    executor: Optional[Executor] = None,
    background: bool = True,
    clock: Callable[[], datetime] = utc_now,
) -> AppContext:
    """
    Wire repository, collaborators and services from ``settings``.

    With ``background`` and no executor given, a thread pool is created and
    owned by the returned context. ``background=False`` runs notifications
    inline.
    """
    repository = Repository(settings.DATABASE_URL, echo=settings.DEBUG)
    repository.init_db()

    owns_executor = False
    if executor is None and background:
        executor = ThreadPoolExecutor(
            max_workers=settings.NOTIFICATION_WORKERS,
            thread_name_prefix="notify",
        )
        owns_executor = True

    mailer = mailer or SmtpMailer.from_settings(settings)
    documents = documents or ReleaseDocumentGenerator(
        public_base_url=settings.PUBLIC_BASE_URL,
        app_name=settings.APP_NAME,
    )
    notifier = NotificationDispatcher(
        mailer=mailer,
        documents=documents,
        dispatch_email=settings.DISPATCH_EMAIL,
        app_name=settings.APP_NAME,
        timezone=settings.DISPLAY_TIMEZONE,
        executor=executor,
    )
    identifiers = IdentifierGenerator(
        exists=repository.load_id_exists,
        prefix=settings.LOAD_ID_PREFIX,
        max_attempts=settings.LOAD_ID_MAX_ATTEMPTS,
        pin_length=settings.PIN_LENGTH,
    )
    state_machine = ReleaseStateMachine(
        repository=repository,
        notifier=notifier,
        clock=clock,
        strict_transitions=settings.STRICT_STATUS_TRANSITIONS,
        allow_void_after_release=settings.ALLOW_VOID_AFTER_RELEASE,
        display_timezone=settings.DISPLAY_TIMEZONE,
    )
    loads = LoadService(
        repository=repository,
        identifiers=identifiers,
        state_machine=state_machine,
        notifier=notifier,
        clock=clock,
        required_fields=settings.REQUIRED_LOAD_FIELDS,
    )

    return AppContext(
        settings=settings,
        repository=repository,
        mailer=mailer,
        documents=documents,
        notifier=notifier,
        identifiers=identifiers,
        state_machine=state_machine,
        loads=loads,
        gateway=VerificationGateway(loads, app_name=settings.APP_NAME),
        executor=executor,
        _owns_executor=owns_executor,
    )
