"""Parse wish spreadsheets into catalog entries."""

from __future__ import annotations

import logging
import zipfile
from typing import IO

import pandas as pd

from ..errors import ValidationError

logger = logging.getLogger(__name__)

# Header aliases, matched case-insensitively after trimming
COLUMN_ALIASES = {
    "child_name": {"姓名", "name", "学生姓名", "儿童姓名", "childname", "child name"},
    "gender": {"性别", "gender", "sex"},
    "content": {"心愿", "wish", "愿望", "心愿内容", "content", "wishcontent", "wish content"},
    "reason": {"理由", "原因", "reason", "wish reason", "心愿理由"},
    "grade": {"年级", "grade", "class"},
}
REQUIRED_COLUMNS = ("child_name", "gender", "content", "reason")

GENDER_VALUES = {
    "男": "male",
    "male": "male",
    "m": "male",
    "女": "female",
    "female": "female",
    "f": "female",
}

SPREADSHEET_EXTENSIONS = (".xlsx",)


def _cell(value) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _map_columns(columns) -> dict:
    mapping = {}
    for col in columns:
        key = str(col).strip().lower()
        for attr, aliases in COLUMN_ALIASES.items():
            if key in aliases and attr not in mapping.values():
                mapping[col] = attr
                break
    return mapping


def parse_sheet(df: pd.DataFrame, sheet_name: str = "Sheet1") -> list[dict]:
    """Turn one sheet into wish attribute dicts. Rows with a blank required cell are skipped."""
    mapping = _map_columns(df.columns)
    missing = [c for c in REQUIRED_COLUMNS if c not in mapping.values()]
    if missing:
        raise ValidationError(
            f"Sheet '{sheet_name}' is missing required columns (name, gender, wish, reason): {', '.join(missing)}"
        )
    df = df.rename(columns=mapping)

    wishes = []
    for _, row in df.iterrows():
        values = {attr: _cell(row.get(attr)) for attr in COLUMN_ALIASES if attr in df.columns}
        if any(not values.get(c) for c in REQUIRED_COLUMNS):
            continue
        gender = GENDER_VALUES.get(values["gender"].lower())
        if gender is None:
            logger.info("Skipping row for %s: unknown gender %r", values["child_name"], values["gender"])
            continue
        wishes.append({
            "child_name": values["child_name"],
            "gender": gender,
            "content": values["content"],
            "reason": values["reason"],
            "grade": values.get("grade") or None,
            # Imported wishes go straight onto the wall
            "is_published": True,
        })
    return wishes


def parse_workbook(stream: IO[bytes], filename: str) -> list[dict]:
    """Read every sheet of an uploaded workbook; at least one valid row is required."""
    if not (filename or "").lower().endswith(SPREADSHEET_EXTENSIONS):
        raise ValidationError("Only Excel workbooks (.xlsx) are supported")
    try:
        sheets = pd.read_excel(stream, sheet_name=None, dtype=str, engine="openpyxl")
    except (ValueError, OSError, KeyError, zipfile.BadZipFile) as exc:
        raise ValidationError("Could not read the Excel file") from exc

    wishes: list[dict] = []
    for name, df in sheets.items():
        if df.empty:
            continue
        wishes.extend(parse_sheet(df, str(name)))
    if not wishes:
        raise ValidationError("The Excel file contains no valid wishes")
    logger.info("Parsed %d wishes from %s", len(wishes), filename)
    return wishes
