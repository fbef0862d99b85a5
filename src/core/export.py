"""CSV / download helpers."""
import csv
import io

from django.http import HttpResponse


def rows_to_csv(rows, columns) -> str:
    """Render ``rows`` as CSV text.

    Args:
        rows: iterable of objects or dicts
        columns: list of (field_name_or_callable, header_label) tuples.
            A string is read with ``getattr`` (or ``dict.get`` for dicts);
            a callable is called with the row.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([label for _, label in columns])

    for row in rows:
        values = []
        for field, _ in columns:
            if callable(field):
                value = field(row)
            elif isinstance(row, dict):
                value = row.get(field, "")
            else:
                value = getattr(row, field, "")
            values.append("" if value is None else str(value))
        writer.writerow(values)

    return buffer.getvalue()


def download_response(content, filename, content_type) -> HttpResponse:
    response = HttpResponse(content, content_type=content_type)
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
