"""Infrastructure layer exports."""

from .directory import InMemoryStudentDirectory, StudentDirectory
from .entries import EntryFilter, EntryRepository, EntrySort, InMemoryEntryRepository, NoopResult
from .logbooks import InMemoryLogbookRepository, LogbookFilter, LogbookNoop, LogbookRepository

__all__ = [
    "EntryFilter",
    "EntryRepository",
    "EntrySort",
    "InMemoryEntryRepository",
    "InMemoryLogbookRepository",
    "InMemoryStudentDirectory",
    "LogbookFilter",
    "LogbookNoop",
    "LogbookRepository",
    "NoopResult",
    "StudentDirectory",
]
