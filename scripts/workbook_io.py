"""Shared file I/O helpers for the maintenance and report scripts."""

from __future__ import annotations

import os
import re
import shutil

import pandas as pd

# Excel rejects these in sheet titles and caps titles at 31 characters.
_BAD_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")
_MAX_SHEET_LEN = 31


def safe_sheet_name(name: str, taken: set[str] | None = None) -> str:
    """Excel-safe, unique sheet title derived from an arbitrary label."""
    base = _BAD_SHEET_CHARS.sub("_", str(name or "Sheet")).strip() or "Sheet"
    base = base[:_MAX_SHEET_LEN]
    taken = taken if taken is not None else set()
    candidate = base
    n = 2
    while candidate.lower() in {t.lower() for t in taken}:
        suffix = f" ({n})"
        candidate = base[: _MAX_SHEET_LEN - len(suffix)] + suffix
        n += 1
    taken.add(candidate)
    return candidate


def write_workbook(
    path: str,
    order: list[str],
    sheets: dict[str, pd.DataFrame],
) -> None:
    """Write sheets in a deterministic order to an xlsx file."""
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name in order:
            sheets.get(sheet_name, pd.DataFrame()).to_excel(
                writer,
                sheet_name=sheet_name,
                index=False,
            )


def backup_sibling(path: str, suffix: str = ".bak") -> str:
    """Create a sibling backup file (default: `<path>.bak`)."""
    backup_path = f"{path}{suffix}"
    shutil.copy2(path, backup_path)
    return backup_path
