"""Per-application context: settings, database, detached task runner."""

from dataclasses import dataclass, field

from fastapi import Request

from app.config import Settings
from app.core.detached import DetachedTasks
from app.models.database import Database


@dataclass
class AppContext:
    settings: Settings
    db: Database
    tasks: DetachedTasks = field(default_factory=DetachedTasks)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(settings=settings, db=Database(settings))


def get_context(request: Request) -> AppContext:
    """FastAPI dependency: the context of the app serving this request."""
    return request.app.state.ctx
