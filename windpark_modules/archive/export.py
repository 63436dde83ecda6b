"""
Audit export index (GoBD / GDPdU).

Builds the semicolon-separated CSV index handed to a tax auditor together
with the archived files: UTF-8 with BOM, CRLF line endings, one row per
document in archive order.

Text cells starting with a spreadsheet formula character are prefixed
with a single quote so they are displayed, never evaluated.
"""

import csv
import io
from collections.abc import Iterable

from windpark_modules.archive.models import ExportedDocument

UTF8_BOM = "\ufeff"

FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

INDEX_HEADER = (
    "Lfd.Nr.",
    "Dokumenttyp",
    "Referenznummer",
    "Dateiname",
    "Dateigroesse (Bytes)",
    "MIME-Typ",
    "SHA-256 Hash",
    "Ketten-Hash",
    "Archiviert am",
    "Aufbewahrung bis",
)


def sanitize_csv_value(value: object) -> str:
    """Cell text, quote-prefixed when it starts like a formula."""
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


def build_index_csv(documents: Iterable[ExportedDocument]) -> str:
    """The CSV index for ``documents`` (already in archive order)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\r\n")
    writer.writerow(INDEX_HEADER)
    for number, doc in enumerate(documents, start=1):
        writer.writerow((
            number,
            sanitize_csv_value(doc.document_type),
            sanitize_csv_value(doc.reference_number),
            sanitize_csv_value(doc.file_name),
            doc.file_size,
            sanitize_csv_value(doc.mime_type),
            doc.content_hash,
            doc.chain_hash,
            doc.archived_at.isoformat(),
            doc.retention_until.isoformat(),
        ))
    return UTF8_BOM + buffer.getvalue()
