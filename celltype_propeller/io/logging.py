"""Run logging for celltype-propeller.

A run writes a plain-text log (one file per run unless told otherwise) and
can append structured records, either as JSON lines or as YAML documents,
next to it.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, List, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
YAML_DOCUMENT_END = "---"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert the current time between the stem and suffix of ``log_path``.

    ``runs/propeller.log`` becomes ``runs/propeller_20251209_080530.log``.
    A path without a suffix gets ``.log``.
    """
    base = Path(log_path)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return base.with_name(f"{base.stem}_{stamp}{base.suffix or '.log'}")


def _reset_handlers(logger: logging.Logger) -> None:
    while logger.handlers:
        stale = logger.handlers[0]
        logger.removeHandler(stale)
        stale.close()


def _build_handlers(path: Path, level: int, console: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [
        logging.FileHandler(path, mode="a", encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def get_logger(
    name: str,
    log_path: PathLike,
    level: int = logging.INFO,
    timestamped: bool = True,
    console: bool = False,
) -> Tuple[logging.Logger, Path]:
    """Attach a run log file (and optionally stdout) to a named logger.

    Any handlers already on the logger are closed and replaced, so calling
    this twice for the same name does not duplicate output.

    Parameters
    ----------
    name : str
        Logger name. Library modules log under ``celltype_propeller.*``, so
        passing "celltype_propeller" captures their notices too.
    log_path : PathLike
        Base path of the log file.
    level : int
        Threshold for the logger and its handlers.
    timestamped : bool
        Write to a fresh timestamped file next to ``log_path``. When False
        ``log_path`` itself is truncated and reused.
    console : bool
        Mirror records to stdout.

    Returns
    -------
    Tuple[logging.Logger, Path]
        The logger and the file it writes to.
    """
    if timestamped:
        target = get_timestamped_log_path(log_path)
    else:
        target = Path(log_path)
        target.unlink(missing_ok=True)
    target.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    _reset_handlers(logger)
    for handler in _build_handlers(target, level, console):
        logger.addHandler(handler)

    return logger, target


def _append_text(log_path: PathLike, text: str) -> None:
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(text + "\n")


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append ``record`` to ``log_path`` as a single JSON line.

    Values JSON cannot encode natively are written with ``str``.
    """
    _append_text(log_path, json.dumps(record, default=str))


def log_yaml(
    log_path: PathLike,
    record: dict[str, Any],
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Write ``record`` as a YAML document terminated by ``---``.

    With ``logger`` the document goes to that logger at INFO level and
    ``log_path`` is left untouched.
    """
    document = yaml.safe_dump(record, sort_keys=False).rstrip("\n")
    message = f"{document}\n{YAML_DOCUMENT_END}"
    if logger is None:
        _append_text(log_path, message)
    else:
        logger.info("%s", message)
