"""Reading and writing the bulk import/export files.

Import files hold one ``title,author_id,genre`` line per book (a header line
is allowed). Exports are CSV files with ``EXPORT_HEADER`` as the first row.
"""

import csv
import logging
import os
from typing import Iterable, Iterator, List, Optional, Tuple

from models import EXPORT_HEADER, ExportRow
from utils.validators import TextValidator

logger = logging.getLogger(__name__)


def _decoded_lines(file_path: str) -> Iterator[Tuple[int, Optional[str]]]:
    """Yield ``(line_no, text)``; ``text`` is None for lines that are not UTF-8."""
    with open(file_path, "rb") as f:
        for line_no, raw in enumerate(f, 1):
            try:
                text = raw.decode("utf-8-sig" if line_no == 1 else "utf-8")
            except UnicodeDecodeError:
                text = None
            yield line_no, text


def read_import_file(file_path: str) -> Tuple[List[Tuple[str, int, str]], int]:
    """Parse an import file. Returns the valid rows and the number of skipped lines."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    rows: List[Tuple[str, int, str]] = []
    skipped = 0
    for line_no, text in _decoded_lines(file_path):
        if text is None:
            logger.warning(f"{file_path}:{line_no}: not valid UTF-8 text")
            skipped += 1
            continue
        fields = next(csv.reader([text]), [])
        if not fields or not any(field.strip() for field in fields):
            continue
        if line_no == 1 and fields[0].strip().lower() == "title":
            continue
        if len(fields) < 2:
            logger.warning(f"{file_path}:{line_no}: expected title,author_id,genre")
            skipped += 1
            continue
        title = TextValidator.sanitize_text(fields[0])
        genre = TextValidator.sanitize_text(fields[2]) if len(fields) > 2 else ""
        try:
            author_id = int(fields[1].strip())
        except ValueError:
            logger.warning(f"{file_path}:{line_no}: author id '{fields[1].strip()}' is not a number")
            skipped += 1
            continue
        if not title:
            logger.warning(f"{file_path}:{line_no}: empty title")
            skipped += 1
            continue
        rows.append((title, author_id, genre))
    return rows, skipped


def write_export_file(file_path: str, rows: Iterable[ExportRow]) -> int:
    """Write the export CSV; returns the number of book rows written."""
    count = 0
    with open(file_path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(EXPORT_HEADER)
        for row in rows:
            writer.writerow(row.as_tuple())
            count += 1
    return count
