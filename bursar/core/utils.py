import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
import json
import time
from typing import Any, Dict, List

from bursar.core.config import LOG_LEVELS, settings
from bursar.core.errors import InvalidArgument

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'

def log_dir() -> Path:
    """Directory shared by payroll logs and audit trails, created on demand."""
    path = Path(settings.AUDIT_LOG_PATH)
    path.mkdir(parents=True, exist_ok=True)
    return path

def atomic_write_json(path: str, obj: Any):
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    # write beside the target so os.replace never crosses filesystems
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=target.parent,
                                     prefix=f".{target.stem}-", suffix=".tmp", delete=False) as f:
        json.dump(obj, f, indent=2, default=str)
    os.replace(f.name, target)

def _resolve_level(log_level: str = None) -> int:
    level = (log_level or settings.LOG_LEVEL).upper()
    if level not in LOG_LEVELS:
        raise InvalidArgument(f"Unknown log level {log_level!r}; expected one of {', '.join(LOG_LEVELS)}")
    return logging.getLevelName(level)

def setup_logging(name: str = "system", *, log_level: str = None):
    """
    Logger `{APP_NAME}.{name}` writing to `{AUDIT_LOG_PATH}/{name}.log`.

    Calling it again for the same name returns the configured logger
    untouched. Set DEV=1 to mirror records to stderr.
    """
    logger = logging.getLogger(f"{settings.APP_NAME}.{name}")
    if logger.handlers:
        return logger
    logger.setLevel(_resolve_level(log_level))
    formatter = logging.Formatter(LOG_FORMAT)
    handler = RotatingFileHandler(str(log_dir() / f"{name}.log"), maxBytes=10_000_000, backupCount=5)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if os.getenv("DEV", "").lower() in ("1","true","yes"):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)
    logger.propagate = False
    return logger

def _audit_path(scope: str) -> Path:
    return Path(settings.AUDIT_LOG_PATH) / f"{scope}_audit.jsonl"

def audit_log(scope: str, actor: str, action: str, obj_type: str, obj_id: str, diff: Dict = None):
    log_dir()
    entry = {
        "ts": int(time.time()),
        "actor": actor,
        "action": action,
        "object_type": obj_type,
        "object_id": obj_id,
        "diff": diff or {}
    }
    with open(_audit_path(scope), "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, default=str) + "\n")
    return entry

def read_audit_log(scope: str) -> List[Dict[str, Any]]:
    path = _audit_path(scope)
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]
