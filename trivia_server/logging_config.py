"""Console logging for the server process."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Attach a console handler to the root logger and set *level*.

    Safe to call more than once; the handler is only installed the first time.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_trivia_console", False) for h in root.handlers):
        return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console._trivia_console = True  # type: ignore[attr-defined]
    root.addHandler(console)

    # uvicorn installs its own access log; keep ours the single request log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


__all__ = ["setup_logging", "LOG_FORMAT"]
