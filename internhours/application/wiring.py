"""Process-wide service instances."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

from internhours.application.bulk import BulkTransitionService
from internhours.application.logbooks import LogbookService
from internhours.application.timesheets import TimesheetService
from internhours.core.settings import Settings, load_settings
from internhours.infrastructure import (
    EntryRepository,
    InMemoryEntryRepository,
    InMemoryLogbookRepository,
    InMemoryStudentDirectory,
    LogbookRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    entries: EntryRepository
    logbooks: LogbookRepository
    directory: InMemoryStudentDirectory
    timesheets: TimesheetService
    bulk: BulkTransitionService
    logbook_service: LogbookService


def build_services(settings: Settings | None = None, *, today: Callable[[], date] | None = None) -> Services:
    """Wire stores and services; ``today`` overrides the configured clock."""

    settings = settings or load_settings()
    today = today or settings.today
    entries: EntryRepository
    logbooks: LogbookRepository
    if settings.database_url:
        from internhours.infrastructure.sql import SqlEntryRepository, SqlLogbookRepository, build_engine

        engine = build_engine(settings.database_url)
        entries = SqlEntryRepository(engine)
        logbooks = SqlLogbookRepository(engine)
        logger.info("using SQL store at %s", engine.url.render_as_string(hide_password=True))
    else:
        entries = InMemoryEntryRepository()
        logbooks = InMemoryLogbookRepository()

    directory = InMemoryStudentDirectory()
    return Services(
        settings=settings,
        entries=entries,
        logbooks=logbooks,
        directory=directory,
        timesheets=TimesheetService(
            entries,
            directory,
            today=today,
            default_required_hours=settings.default_required_hours,
        ),
        bulk=BulkTransitionService(entries, directory),
        logbook_service=LogbookService(logbooks, directory, today=today),
    )


_services: Services | None = None


def get_services() -> Services:
    """Return the singleton services for the process."""

    global _services
    if _services is None:
        _services = build_services()
    return _services


def configure_services(services: Services) -> None:
    global _services
    _services = services


def reset_state() -> None:
    """Clear every store (used in tests)."""

    services = get_services()
    services.entries.reset()
    services.logbooks.reset()
    services.directory.reset()
