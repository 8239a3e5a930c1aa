import logging
import re
from typing import Iterable, Union


class RedactingFilter(logging.Filter):
    """Redact wallet and credential material from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = str(record.getMessage())
            msg = re.sub(
                r"(Authorization:?)\s+\S+", r"\1 ***", msg, flags=re.IGNORECASE
            )
            msg = re.sub(
                r"(jwk|token|secret|password|key)=\S+", r"\1=***", msg, flags=re.IGNORECASE
            )
            # private exponent of an RSA JWK wallet
            msg = re.sub(r'("d"\s*:\s*)"[^"]*"', r'\1"***"', msg)
            record.msg = msg
            record.args = None
        except Exception:
            pass
        return True


def setup_logging(
    level: Union[int, str] = logging.INFO,
    loggers: Iterable[str] = ("rebase_api", "rebase_cli", "uvicorn", "uvicorn.access"),
) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level)
    f = RedactingFilter()
    # records from child loggers only pass handler filters
    for h in logging.getLogger().handlers:
        h.addFilter(f)
    for name in loggers:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.addFilter(f)
