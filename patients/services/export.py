from __future__ import annotations

import csv
import io
import json
from typing import Iterable

EXPORT_FORMATS = {
    'json': ('application/json', 'patients.json'),
    'csv': ('text/csv', 'patients.csv'),
}
CSV_COLUMNS = [
    ('ID', 'id'),
    ('Name', 'name'),
    ('Email', 'email'),
    ('Birth Date', 'birthDate'),
    ('Age', 'age'),
    ('Address', 'address'),
    ('Created At', 'createdAt'),
]


def render_json(patients: Iterable[dict]) -> str:
    return json.dumps(list(patients), ensure_ascii=False, indent=2)


def render_csv(patients: Iterable[dict]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow([title for title, _ in CSV_COLUMNS])
    for p in patients:
        writer.writerow([p.get(field, '') for _, field in CSV_COLUMNS])
    return buf.getvalue()


def render(patients: Iterable[dict], fmt: str) -> tuple[str, str, str]:
    """Return ``(body, content_type, filename)`` for a supported format."""
    content_type, filename = EXPORT_FORMATS[fmt]
    body = render_csv(patients) if fmt == 'csv' else render_json(patients)
    return body, content_type, filename
