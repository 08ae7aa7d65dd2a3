"""Tabular upload parsing (CSV and Excel) built on pandas.

Every cell is read as text so identifiers such as ``0042`` survive intact;
callers convert numbers and dates themselves.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, BinaryIO

import pandas as pd

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Supported file types."""
    CSV = "csv"
    EXCEL = "excel"
    UNKNOWN = "unknown"


SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xlsm")


class ParseError(Exception):
    """Raised when an uploaded file cannot be parsed."""
    pass


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename, falling back to the ZIP/Office magic number."""
    filename_lower = filename.lower()

    if filename_lower.endswith(".csv"):
        return FileType.CSV
    elif filename_lower.endswith((".xlsx", ".xlsm")):
        return FileType.EXCEL

    if content and content.startswith(b"PK\x03\x04"):
        return FileType.EXCEL

    return FileType.UNKNOWN


def normalize_column(name: Any) -> str:
    """``Exam Name`` / ``examName`` / ``exam-name`` -> ``exam_name``."""
    text = str(name).strip()
    text = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", text)
    return re.sub(r"[^0-9a-zA-Z]+", "_", text).strip("_").lower()


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    df = df.rename(columns=normalize_column)
    df = df.dropna(how="all")
    # NaN -> None so downstream validation sees missing cells
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict("records")


def parse_csv(file_obj: BinaryIO, filename: str) -> list[dict[str, Any]]:
    """Parse CSV file into records keyed by normalized column name.

    Raises:
        ParseError: If CSV parsing fails or the file has no rows
    """
    try:
        df = pd.read_csv(file_obj, encoding="utf-8", dtype=str)
    except Exception as e:
        logger.error(f"CSV parsing failed for {filename}: {e}")
        raise ParseError(f"Failed to parse CSV: {e}") from e

    if df.empty:
        raise ParseError("CSV file is empty")

    logger.info(f"Parsed CSV {filename} with {len(df)} rows and {len(df.columns)} columns")
    return _records(df)


def parse_excel(file_obj: BinaryIO, filename: str, sheet_name: str | int = 0) -> list[dict[str, Any]]:
    """Parse the first (or named) sheet of an Excel workbook.

    Raises:
        ParseError: If Excel parsing fails or the sheet has no rows
    """
    try:
        df = pd.read_excel(file_obj, sheet_name=sheet_name, engine="openpyxl", dtype=str)
    except Exception as e:
        logger.error(f"Excel parsing failed for {filename}: {e}")
        raise ParseError(f"Failed to parse Excel: {e}") from e

    if df.empty:
        raise ParseError("Excel sheet is empty")

    logger.info(f"Parsed Excel {filename} with {len(df)} rows and {len(df.columns)} columns")
    return _records(df)


def parse_table(file_obj: BinaryIO, filename: str, content: bytes | None = None) -> list[dict[str, Any]]:
    """Parse an uploaded table based on its type.

    Raises:
        ParseError: If the file type is unsupported or parsing fails
    """
    file_type = detect_file_type(filename, content)

    if file_type == FileType.CSV:
        return parse_csv(file_obj, filename)
    elif file_type == FileType.EXCEL:
        return parse_excel(file_obj, filename)
    else:
        raise ParseError(f"Unsupported file type: {filename}. Allowed: {', '.join(SUPPORTED_EXTENSIONS)}")
