"""Logging setup for the CLI and embedding applications."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from toolrelay.config.schema import LoggingConfig

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class KeyValueFormatter(logging.Formatter):
    """Render records as ``key=value`` pairs, including ``extra`` fields."""

    _RESERVED: ClassVar[frozenset[str]] = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"ts={self.formatTime(record)}",
            f"level={record.levelname}",
            f"logger={record.name}",
            f"msg={record.getMessage()!r}",
        ]
        for key, value in record.__dict__.items():
            if key in self._RESERVED or key.startswith("_"):
                continue
            parts.append(f"{key}={value!r}")
        if record.exc_info:
            parts.append(f"exc={self.formatException(record.exc_info)!r}")
        return " ".join(parts)


def configure_logging(config: LoggingConfig) -> None:
    """Configure the ``toolrelay`` logger hierarchy from *config*.

    Replaces handlers installed by a previous call, so it is safe to call
    more than once.
    """
    root = logging.getLogger("toolrelay")
    root.setLevel(config.level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = (
        KeyValueFormatter() if config.structured else logging.Formatter(_PLAIN_FORMAT)
    )

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
