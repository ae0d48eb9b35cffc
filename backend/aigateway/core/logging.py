"""
Structured logging configuration.
Designed for easy debugging without exposing sensitive data.
"""
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from aigateway.core.config import settings


# Event keys whose values must never reach the log output
_SECRET_KEYS = {"api_key", "authorization", "x-api-key", "key"}


def _redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask credentials accidentally bound to a log event."""
    for key in list(event_dict):
        if key.lower() in _SECRET_KEYS and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging() -> None:
    """Configure structured logging for the application."""

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_secrets,
    ]

    if settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def _truncate_content(content: str, max_length: int = 0) -> str:
    """Truncate content if max_length is set."""
    if max_length <= 0 or len(content) <= max_length:
        return content
    return content[:max_length] + f"... [truncated, total {len(content)} chars]"


# ========================================
# Provider Call Tracking
# ========================================

@dataclass
class CallMessageLog:
    """One message sent to a provider."""
    role: str
    content: str
    content_length: int = 0

    def __post_init__(self):
        self.content_length = len(self.content)


@dataclass
class ProviderCallLog:
    """Complete log entry for a single vendor API call."""
    call_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    provider: str = ""
    model: str = ""
    endpoint: str = ""

    request_messages: List[CallMessageLog] = field(default_factory=list)
    request_params: Dict[str, Any] = field(default_factory=dict)

    response_chars: int = 0
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    start_time: float = 0.0
    duration_ms: float = 0.0

    success: bool = True
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class ProviderCallLogger:
    """
    Tracks vendor API calls made by the provider adapters.

    Every call produces one summary line ("AI call completed" or
    "AI call failed"). Message and response content are only logged
    when AI_DEBUG_LOG is enabled, truncated to AI_DEBUG_LOG_MAX_LENGTH.

    Usage:
        call_logger = ProviderCallLogger(logger)
        with call_logger.track_call("openai", "gpt-4o", "chat/completions") as call:
            call.add_messages(messages)
            call.set_request_params(temperature=0.7)
            # ... make API call ...
            call.set_response(content, prompt_tokens=12)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        debug: Optional[bool] = None,
        max_length: Optional[int] = None,
    ):
        self.logger = logger
        self.debug = settings.AI_DEBUG_LOG if debug is None else debug
        self.max_length = settings.AI_DEBUG_LOG_MAX_LENGTH if max_length is None else max_length

    @contextmanager
    def track_call(
        self,
        provider: str,
        model: str,
        endpoint: str,
    ) -> Generator["ProviderCallTracker", None, None]:
        """Context manager for tracking a vendor API call."""
        tracker = ProviderCallTracker(
            logger=self.logger,
            debug=self.debug,
            max_length=self.max_length,
            log=ProviderCallLog(provider=provider, model=model, endpoint=endpoint),
        )
        tracker.log.start_time = time.time()
        try:
            yield tracker
        except Exception as e:
            if tracker.log.success:
                tracker.set_error(type(e).__name__, str(e))
            raise
        finally:
            tracker.finish()


class ProviderCallTracker:
    """Tracker for a single vendor API call."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        debug: bool,
        max_length: int,
        log: ProviderCallLog,
    ):
        self.logger = logger
        self.debug = debug
        self.max_length = max_length
        self.log = log

    def add_message(self, role: str, content: str) -> None:
        msg = CallMessageLog(role=role, content=content)
        self.log.request_messages.append(msg)

        if self.debug:
            self.logger.debug(
                "AI request message",
                call_id=self.log.call_id,
                role=role,
                content_length=msg.content_length,
                content=_truncate_content(content, self.max_length),
            )

    def add_messages(self, messages: List[dict]) -> None:
        for msg in messages:
            self.add_message(msg.get("role", "unknown"), msg.get("content", ""))

    def set_request_params(self, **params: Any) -> None:
        self.log.request_params = {k: v for k, v in params.items() if v is not None}

    def set_response(
        self,
        content: str,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        self.log.response_chars = len(content)
        self.log.prompt_tokens = prompt_tokens
        self.log.completion_tokens = completion_tokens
        self.log.total_tokens = total_tokens
        self.log.success = True

        if self.debug:
            self.logger.debug(
                "AI response content",
                call_id=self.log.call_id,
                content_length=self.log.response_chars,
                content=_truncate_content(content, self.max_length),
            )

    def set_error(self, error_type: str, error_message: str) -> None:
        self.log.success = False
        self.log.error_type = error_type
        self.log.error_message = error_message

    def finish(self) -> None:
        """Log the call summary."""
        self.log.duration_ms = (time.time() - self.log.start_time) * 1000

        if self.log.success:
            self.logger.info(
                "AI call completed",
                call_id=self.log.call_id,
                provider=self.log.provider,
                model=self.log.model,
                endpoint=self.log.endpoint,
                duration_ms=round(self.log.duration_ms, 2),
                message_count=len(self.log.request_messages),
                message_roles=[m.role for m in self.log.request_messages],
                request_chars=sum(m.content_length for m in self.log.request_messages),
                response_chars=self.log.response_chars,
                prompt_tokens=self.log.prompt_tokens,
                completion_tokens=self.log.completion_tokens,
                total_tokens=self.log.total_tokens,
                params=self.log.request_params,
            )
        else:
            self.logger.error(
                "AI call failed",
                call_id=self.log.call_id,
                provider=self.log.provider,
                model=self.log.model,
                endpoint=self.log.endpoint,
                duration_ms=round(self.log.duration_ms, 2),
                error_type=self.log.error_type,
                error_message=self.log.error_message,
            )
