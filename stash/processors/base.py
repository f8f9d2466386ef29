"""Shared wiring for the batch processors."""

from dataclasses import dataclass

from stash.ai.preferences import AIPreferences
from stash.ai.providers import ProviderClient
from stash.db.saves import SavesRepository
from stash.jobs.controller import JobLifecycleController
from stash.jobs.dispatcher import JobDispatcher
from stash.notifications import NotificationCenter

EXCERPT_LENGTH = 300


@dataclass
class ProcessorContext:
    """Everything a processor needs to open, drive and report on a job."""
    controller: JobLifecycleController
    dispatcher: JobDispatcher
    saves: SavesRepository
    ai_client: ProviderClient
    preferences: AIPreferences
    notifications: NotificationCenter


def truncate(text: str, length: int, ellipsis: bool = True) -> str:
    text = text or ""
    if len(text) <= length:
        return text
    return text[:length] + ("..." if ellipsis else "")


def excerpt(content: str) -> str:
    return (content or "")[:EXCERPT_LENGTH] + "..."


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"
