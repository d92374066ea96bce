# kboot_bot/support/path_resolver.py
# Resolves project, output and executable paths for the boot panel.
# Output directory honours the KBOOT_OUTPUT_DIR env override (tests redirect logs with it).

import os
from pathlib import Path
from typing import Iterable, Optional

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

CATEGORIES = {
    "logs": "logs",
}


def get_output_root() -> Path:
    override = os.environ.get("KBOOT_OUTPUT_DIR")
    if override:
        return Path(override).expanduser()
    return PACKAGE_ROOT / "output"


def get_output_path(category: str = "logs", filename: Optional[str] = None) -> str:
    """
    Returns output/<category>/<filename> (or the category dir when filename is None).
    Raises ValueError for unknown categories.
    """
    if category not in CATEGORIES:
        raise ValueError(f"[path_resolver] Unknown output category: {category}")
    base = get_output_root() / CATEGORIES[category]
    if filename:
        return str(base / filename)
    return str(base)


def first_existing(candidates: Iterable[Optional[str]]) -> Optional[str]:
    """
    Return the first candidate (stripped, non-empty) that exists on disk, or None.
    """
    for candidate in candidates:
        s = (candidate or "").strip()
        if not s:
            continue
        try:
            if Path(s).exists():
                return s
        except OSError:
            continue
    return None


def resolve_relative(path: str, base_dir: Optional[Path] = None) -> str:
    """
    Resolve a possibly-relative path against base_dir (default: project root).
    Absolute paths are returned unchanged.
    """
    p = Path(path).expanduser()
    if p.is_absolute():
        return str(p)
    return str((base_dir or PROJECT_ROOT) / p)


__all__ = [
    "PACKAGE_ROOT",
    "get_output_root",
    "get_output_path",
    "first_existing",
    "resolve_relative",
]
