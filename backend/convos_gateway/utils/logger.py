"""Root logging setup.

Once the authenticator has parsed a request's headers it binds the caller's
inbox and installation IDs to the current context; every record emitted
afterwards in that request carries them, as JSON fields or as a text suffix.
"""

import contextvars
import logging
import sys

from pythonjsonlogger.json import JsonFormatter

ctx_inbox_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("inbox_id", default=None)
ctx_installation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("installation_id", default=None)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Capped at WARNING: they log every outbound XMTP / Firebase request.
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google.auth")


def auth_context() -> dict[str, str]:
    """The identity bound to the current context, without unset entries."""
    context = {"inbox_id": ctx_inbox_id.get(), "installation_id": ctx_installation_id.get()}
    return {key: value for key, value in context.items() if value}


class AuthContextJsonFormatter(JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.update(auth_context())


class AuthContextTextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = auth_context()
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def setup_logger(log_format: str = "text", log_level: str = "INFO") -> logging.Logger:
    """Replace the root handlers with one stdout handler in *log_format* (``text`` or ``json``)."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(
            AuthContextJsonFormatter(JSON_FIELDS, rename_fields={"levelname": "level", "asctime": "timestamp"})
        )
    else:
        handler.setFormatter(AuthContextTextFormatter(TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def bind_auth_context(inbox_id: str | None, installation_id: str | None) -> None:
    """Attach the caller identity to log records emitted for this request."""
    ctx_inbox_id.set(inbox_id)
    ctx_installation_id.set(installation_id)
