import re
from datetime import date
from pathlib import Path
from typing import Optional

UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")
DEFAULT_EXPORT_STEM = "results"


def sanitize_filename(name: str, default: str = "export") -> str:
    """Flatten ``name`` to a single safe path component.

    ``..`` segments are rejected outright; separators become underscores,
    other unsafe characters collapse to ``_`` and leading dots are dropped.
    """

    parts = [p for p in str(name or "").strip().replace("\\", "/").split("/") if p not in ("", ".")]
    if ".." in parts:
        raise ValueError("Path traversal not allowed")
    cleaned = UNSAFE_CHARS_RE.sub("_", "_".join(parts))
    cleaned = re.sub(r"\.{2,}", ".", cleaned).lstrip(".")
    return cleaned or default


def export_filename(day: Optional[date] = None, stem: str = DEFAULT_EXPORT_STEM) -> str:
    day = day or date.today()
    return f"{sanitize_filename(stem, default=DEFAULT_EXPORT_STEM)}-{day.isoformat()}.csv"


def build_export_path(base_dir: Path, filename: str) -> Path:
    base = Path(base_dir).resolve()
    path = (base / sanitize_filename(filename)).resolve()
    if path.parent != base:
        raise ValueError("Export path escapes base directory")
    return path
