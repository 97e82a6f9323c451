"""Ambient parse context and conversion of unexpected exceptions into errors."""

import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from .errors import ParserError, PanicRecoveredError
from .logger import NopLogger


T = TypeVar("T")


@dataclass
class ParseContext:
    """Request-scoped values carried through a parse.

    Every key is optional. ``deadline`` is a ``time.monotonic()`` value.
    """
    request_id: Optional[str] = None
    file_path: Optional[str] = None
    language: Optional[str] = None
    deadline: Optional[float] = None
    _cancelled: threading.Event = field(
        default_factory=threading.Event, init=False, repr=False, compare=False
    )

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    @classmethod
    def with_timeout(cls, seconds: float, **values: Any) -> "ParseContext":
        """Create a context whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds, **values)


class PanicHandler:
    """Runs operations and converts unexpected exceptions into PanicRecoveredError."""

    def __init__(self, logger=None):
        self.logger = logger or NopLogger()

    def recover(
        self,
        op: str,
        fn: Callable[[], T],
        ctx: Optional[ParseContext] = None,
    ) -> T:
        """Run ``fn``; re-raise ParserErrors, convert anything else.

        Args:
            op: Operation tag for the error and the log entry
            fn: Zero-argument callable
            ctx: Context supplying request id, file path and language

        Returns:
            Whatever ``fn`` returns.

        Raises:
            ParserError: Unchanged when ``fn`` raises one.
            PanicRecoveredError: For any other exception.
        """
        try:
            return fn()
        except ParserError:
            raise
        except Exception as e:
            raise self.to_error(op, e, ctx) from e

    def to_error(
        self, op: str, exc: BaseException, ctx: Optional[ParseContext] = None
    ) -> PanicRecoveredError:
        """Build (and log) a PanicRecoveredError for an unexpected exception."""
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        path = language = ""
        if ctx is not None:
            if ctx.request_id:
                op = f"{op}[{ctx.request_id}]"
            path = ctx.file_path or ""
            language = ctx.language or ""

        err = PanicRecoveredError(op, cause=exc, path=path, language=language, stack=stack)
        self.logger.error(
            "panic recovered",
            err,
            operation=op,
            panic_value=repr(exc),
            has_stack=bool(stack),
        )
        return err
