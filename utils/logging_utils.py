import logging
import time
from typing import Optional


def setup_logging(app, level: Optional[str] = None) -> None:
    level_name = (level or app.config.get("LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, level_name, logging.INFO)

    fmt = logging.Formatter(
        fmt="%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    fmt.converter = time.gmtime

    root = logging.getLogger()
    root.setLevel(lvl)
    if not any(getattr(h, "_think2wins", False) for h in root.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        sh._think2wins = True
        root.addHandler(sh)

    app.logger.setLevel(lvl)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.INFO if app.debug else logging.WARNING)
