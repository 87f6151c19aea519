from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..errors import ERR_UTIL_LOAD_STATE, FilesystemError
from ..resources.package_download import PackageDownloadState

log = logging.getLogger(__name__)


STATE_VERSION = "1"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
    tmp.replace(path)


def save_state(path: Path, state: Optional[PackageDownloadState]) -> None:
    """Persist the tracked record; `None` records an absent resource."""
    atomic_write_json(
        path,
        {
            "state_version": STATE_VERSION,
            "updated_utc": utc_now_iso(),
            "resource": asdict(state) if state is not None else None,
        },
    )


def load_state(path: Path) -> Optional[PackageDownloadState]:
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            js = json.load(f)
        if not isinstance(js, dict):
            raise ValueError(f"expected a JSON object, got {type(js).__name__}")
        raw = js.get("resource")
        if not raw:
            return None
        known = {fld.name for fld in fields(PackageDownloadState)}
        return PackageDownloadState(**{k: v for k, v in raw.items() if k in known})
    except (OSError, ValueError, TypeError, AttributeError) as e:
        msg = (
            "An unexpected error occurred while reading the state file. Fix or remove it "
            f"and try again.\n\nError: {e}\nFile: {path}"
        )
        log.error(msg, extra={"internal_error_code": ERR_UTIL_LOAD_STATE})
        raise FilesystemError(msg, summary="State File Error") from e
