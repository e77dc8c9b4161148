"""
Allowed status edges for applications and logbooks.

Every status change in the services goes through one of the ``check_*``
functions below, so the edge tables are the single source of truth.
"""

from typing import Dict, FrozenSet

from stajkontrol.core.exceptions import ConflictError
from stajkontrol.core.security import Role
from stajkontrol.models import Application, ApplicationStatus, Logbook, LogbookStatus

APPLICATION_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.CANCELLED: frozenset(),
}

LOGBOOK_TRANSITIONS: Dict[LogbookStatus, FrozenSet[LogbookStatus]] = {
    LogbookStatus.WAITING: frozenset({LogbookStatus.UPLOADED}),
    LogbookStatus.UPLOADED: frozenset(
        {LogbookStatus.UPLOADED, LogbookStatus.APPROVED, LogbookStatus.WAITING}
    ),
    LogbookStatus.APPROVED: frozenset(),
}

# Student-initiated logbook status changes (withdraw / resubmit)
STUDENT_LOGBOOK_TRANSITIONS = {
    (LogbookStatus.UPLOADED, LogbookStatus.WAITING),
    (LogbookStatus.WAITING, LogbookStatus.UPLOADED),
}

CANNOT_CANCEL_MESSAGE = "cannot cancel, Application is Approved and Logbook is past Waiting"


def _sources(table: dict, target) -> FrozenSet:
    return frozenset(source for source, targets in table.items() if target in targets)


def check_application_transition(application: Application, target: ApplicationStatus, role: str) -> None:
    """Raise ConflictError unless ``application`` may move to ``target``.

    Admins may additionally cancel an approved application while its
    logbook is still waiting.
    """
    current = ApplicationStatus(application.status)

    if target == ApplicationStatus.CANCELLED and current == ApplicationStatus.APPROVED:
        logbook = application.logbook
        if logbook is not None and logbook.status != LogbookStatus.WAITING:
            raise ConflictError(
                CANNOT_CANCEL_MESSAGE,
                errors={"current": current.value, "logbook": LogbookStatus(logbook.status).value},
            )
        if role == Role.ADMIN.value:
            return
        raise ConflictError.invalid_transition("Application", current, ApplicationStatus.PENDING)

    if target not in APPLICATION_TRANSITIONS[current]:
        raise ConflictError.invalid_transition(
            "Application", current, _sources(APPLICATION_TRANSITIONS, target) or target
        )


def check_logbook_transition(logbook: Logbook, target: LogbookStatus, require_file: bool = True) -> None:
    """Raise ConflictError unless ``logbook`` may move to ``target``.

    ``require_file=False`` is for uploads, where the file arrives with the
    transition itself.
    """
    current = LogbookStatus(logbook.status)
    if target not in LOGBOOK_TRANSITIONS[current]:
        raise ConflictError.invalid_transition(
            "Logbook", current, _sources(LOGBOOK_TRANSITIONS, target) or target
        )
    if require_file:
        check_logbook_file_rule(logbook, target)


def check_logbook_file_rule(logbook: Logbook, target: LogbookStatus) -> None:
    """A logbook can only be Uploaded or Approved while it holds a file."""
    if target in (LogbookStatus.UPLOADED, LogbookStatus.APPROVED) and logbook.file is None:
        raise ConflictError(
            f"Logbook has no file, cannot become {target.value}",
            errors={"current": LogbookStatus(logbook.status).value, "required": "file"},
        )
