# medstock/utils/csv_utils.py
"""
CSV helpers shared by the batch imports, their templates and the report
exports.

- Imports accept UTF-8 with or without a byte-order mark.
- Templates and exports are written with a BOM so spreadsheet tools pick
  the right encoding, and with "\\n" line endings so output is byte-stable.
"""

import csv
from io import StringIO
from typing import Iterable, Sequence

BOM = "\ufeff"


class CsvFormatError(ValueError):
    pass


def read_csv_rows(
    content: bytes | str,
    required_headers: Sequence[str] = (),
) -> list[tuple[int, dict[str, str]]]:
    """
    Parse a CSV with a header row into (line_number, row) pairs.

    line_number is the spreadsheet line: the header is line 1, so the first
    data row is line 2. Blank rows are skipped and do not advance the count.
    Values are stripped; missing cells come back as "".
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise CsvFormatError("O arquivo deve estar codificado em UTF-8.") from None
    else:
        text = content.lstrip(BOM)

    if not text.strip():
        raise CsvFormatError("O arquivo CSV não contém dados.")

    reader = csv.DictReader(StringIO(text))
    headers = [h.strip().lstrip(BOM) for h in (reader.fieldnames or [])]
    reader.fieldnames = headers

    missing = [h for h in required_headers if h not in headers]
    if missing:
        raise CsvFormatError(
            "Cabeçalho inválido. Colunas ausentes: " + ", ".join(missing) + "."
        )

    rows: list[tuple[int, dict[str, str]]] = []
    index = 0
    for raw in reader:
        values = {
            key: (value or "").strip()
            for key, value in raw.items()
            if key is not None and not isinstance(value, list)
        }
        if not any(values.values()):
            continue
        rows.append((index + 2, values))
        index += 1

    if not rows:
        raise CsvFormatError("O arquivo CSV não contém dados.")
    return rows


def write_csv(
    headers: Sequence[str],
    rows: Iterable[Sequence[object]],
    *,
    with_bom: bool = True,
) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    body = output.getvalue()
    return (BOM + body) if with_bom else body
