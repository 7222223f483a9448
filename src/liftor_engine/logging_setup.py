import logging
import re

from .config import SETTINGS

_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), "Bearer <REDACTED>"),
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "<REDACTED>"),
    (re.compile(r"(api[_-]?key=)[^&\s]+", re.IGNORECASE), r"\1<REDACTED>"),
]


class SensitiveDataFilter(logging.Filter):
    """
    Redact API keys and bearer tokens from log records before they are emitted.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: _redact(v) if isinstance(v, str) else v for k, v in record.args.items()
                }
            else:
                record.args = tuple(_redact(a) if isinstance(a, str) else a for a in record.args)
        return True


def _redact(text: str) -> str:
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def setup_logging(level: int | str | None = None) -> None:
    """
    Set up root logger with a stream handler and the sensitive data filter.
    """
    root = logging.getLogger()
    if root.handlers:
        return  # already configured
    root.setLevel(level if level is not None else SETTINGS.LOG_LEVEL)
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.addFilter(SensitiveDataFilter())
    root.addHandler(ch)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
