"""Per-session registry of in-flight :class:`ProcessingContext` objects.

Each call to ``process_image`` opens exactly one context through
:meth:`PhaseContextStore.session`, an async context manager that releases
the context on the way out whether the run succeeded, failed, or raised.
Contexts are keyed by session id, so any number of independent runs can
be in flight on the same processor without seeing each other's fields.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from src.models.pipeline import ProcessingContext, ProcessingOptions
from src.models.poster import PosterImage
from src.utils.errors import PipelineError
from src.utils.logging import bind_run_context, clear_run_context, get_logger


class PhaseContextStore:
    """Owns the mutable state of every active run."""

    def __init__(self) -> None:
        self._contexts: dict[str, ProcessingContext] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(
        self,
        image: PosterImage,
        options: ProcessingOptions | None = None,
        session_id: str | None = None,
    ) -> ProcessingContext:
        """Register a fresh context for *image* and return it.

        Raises
        ------
        PipelineError
            If *session_id* is already active.
        """
        session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        if session_id in self._contexts:
            raise PipelineError(message=f"Session {session_id} is already active")
        context = ProcessingContext(
            session_id=session_id,
            image=image,
            options=options or ProcessingOptions(),
        )
        self._contexts[session_id] = context
        self._logger.debug("context_created", session_id=session_id, poster_id=image.poster_id)
        return context

    def get(self, session_id: str) -> ProcessingContext | None:
        return self._contexts.get(session_id)

    def release(self, session_id: str) -> None:
        """Forget the context for *session_id*.  Unknown ids are ignored."""
        if self._contexts.pop(session_id, None) is not None:
            self._logger.debug("context_released", session_id=session_id)

    @asynccontextmanager
    async def session(
        self,
        image: PosterImage,
        options: ProcessingOptions | None = None,
        session_id: str | None = None,
    ) -> AsyncIterator[ProcessingContext]:
        """Open a context for one run and release it when the block exits.

        The session and poster ids are bound into structlog's context
        variables for the duration, so every log line of the run carries
        them.
        """
        context = self.create(image, options, session_id)
        bind_run_context(context.session_id, context.poster_id)
        try:
            yield context
        finally:
            self.release(context.session_id)
            clear_run_context()

    @property
    def active_sessions(self) -> list[str]:
        return list(self._contexts)

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._contexts
