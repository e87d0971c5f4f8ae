from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Any, Dict, Optional


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": 1700000000000, "lvl": "INFO", "name": "tile_server.renderer", "msg": "text", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Configure the root logger with JSON output on stdout.

    Level precedence:
      - explicit `level` arg
      - env LOG_LEVEL (DEBUG/INFO/WARNING/ERROR)
      - INFO

    Idempotent unless `force` is set (the server and CLIs call it again once
    the YAML config has been read).
    """
    root = logging.getLogger()
    if getattr(root, "_tiles_configured", False) and not force:
        return

    lvl_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, lvl_name, None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
    root._tiles_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; ensures root is configured."""
    setup_logging()
    return logging.getLogger(name)


def fields(**kw: Any) -> Dict[str, Any]:
    """Structured payload for `log.info(msg, extra=fields(...))`."""
    return {"extra": kw}
