"""Service-area file codecs: GeoJSON, CSV and KML import; GeoJSON, CSV and zip export."""
from __future__ import annotations

import csv
import io
import json
import time
import unicodedata
import zipfile
from xml.etree import ElementTree

from core.exceptions import DomainError
from core.export import rows_to_csv
from core.geo import create_circle_polygon

IMPORT_FORMATS = ("geojson", "csv", "kml")
EXPORT_FORMATS = ("geojson", "csv", "zip")
MAX_UPLOAD_SIZE = 5 * 1024 * 1024

EXPORT_COLUMNS = [
    (lambda area: str(area.pk), "id"),
    ("name", "name"),
    ("code", "code"),
    ("description", "description"),
    ("type", "type"),
    ("status", "status"),
    ("coverage_radius", "coverage_radius"),
    ("center_latitude", "center_lat"),
    ("center_longitude", "center_lng"),
]

CONTENT_TYPES = {
    "geojson": "application/json",
    "csv": "text/csv",
    "zip": "application/zip",
}


# ---------------------------------------------------------------------------
# Upload helpers
# ---------------------------------------------------------------------------

def read_upload(uploaded_file) -> str:
    """Decode an uploaded file with utf-8 fallback and size guard."""
    if not uploaded_file:
        raise DomainError("No file uploaded", field="file")
    if getattr(uploaded_file, "size", 0) and uploaded_file.size > MAX_UPLOAD_SIZE:
        raise DomainError("File exceeds 5 MB", field="file")

    raw = uploaded_file.read()
    if not raw:
        raise DomainError("Uploaded file is empty", field="file")
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _normalize_header(value: str) -> str:
    cleaned = (value or "").strip().lower()
    cleaned = unicodedata.normalize("NFKD", cleaned)
    cleaned = "".join(ch for ch in cleaned if not unicodedata.combining(ch))
    for ch in (" ", "-", "_", "/", "\\", ".", "(", ")", ":"):
        cleaned = cleaned.replace(ch, "")
    return cleaned


def _row_value(row: dict, header_map: dict, *aliases: str) -> str:
    """Return the first non-empty value matching one of the provided aliases."""
    for alias in aliases:
        key = header_map.get(_normalize_header(alias))
        if key is None:
            continue
        raw = row.get(key)
        if raw is None:
            continue
        text = str(raw).strip()
        if text != "":
            return text
    return ""


def _build_csv_dict_reader(content: str) -> csv.DictReader:
    """Build a DictReader with automatic delimiter detection."""
    sample = content[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;|\t")
    except csv.Error:
        dialect = csv.excel
    return csv.DictReader(io.StringIO(content), dialect=dialect)


def _generated_code(index: int) -> str:
    return f"SA-{int(time.time() * 1000)}{index}"[:20]


def _float(raw, default=0.0) -> float:
    if raw in (None, ""):
        return default
    return float(str(raw).replace(",", "."))


def _record(properties: dict, index: int, **fields) -> dict:
    record = {
        "name": properties.get("name") or "Unnamed Area",
        "code": properties.get("code") or _generated_code(index),
        "description": properties.get("description") or "",
        "type": properties.get("type") or "both",
        "status": properties.get("status") or "active",
    }
    record.update(fields)
    return record


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def parse_geojson(content: str) -> list[dict]:
    try:
        document = json.loads(content)
    except ValueError:
        raise DomainError("Invalid GeoJSON file", field="file")
    if not isinstance(document, dict) or document.get("type") != "FeatureCollection":
        raise DomainError("GeoJSON file must contain a FeatureCollection", field="file")

    records = []
    for index, feature in enumerate(document.get("features") or []):
        if not isinstance(feature, dict):
            continue
        properties = feature.get("properties") or {}
        try:
            radius = _float(properties.get("coverage_radius", properties.get("coverageRadius")))
        except ValueError:
            records.append(_record(properties, index, error="Invalid coverage radius"))
            continue
        records.append(_record(
            properties, index,
            boundaries=feature.get("geometry"),
            coverage_radius=radius,
        ))
    return records


def parse_csv(content: str) -> list[dict]:
    """Rows of ``name, code, description, type, status, lat, lng, radius``.

    Each point and radius becomes a 32-segment circular polygon.
    """
    reader = _build_csv_dict_reader(content)
    header_map = {_normalize_header(col): col for col in (reader.fieldnames or [])}

    records = []
    for index, row in enumerate(reader):
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        properties = {
            key: _row_value(row, header_map, key)
            for key in ("name", "code", "description", "type", "status")
        }
        try:
            lat = _float(_row_value(row, header_map, "lat", "latitude"))
            lng = _float(_row_value(row, header_map, "lng", "lon", "longitude"))
            radius = _float(_row_value(row, header_map, "radius", "coverage_radius"))
        except ValueError:
            records.append(_record(properties, index, error="Invalid lat, lng or radius"))
            continue
        records.append(_record(
            properties, index,
            boundaries=create_circle_polygon(lat, lng, radius),
            center=[lng, lat],
            coverage_radius=radius,
        ))
    return records


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find(element, name):
    for child in element.iter():
        if _local(child.tag) == name:
            return child
    return None


def _kml_ring(text: str) -> list[list[float]]:
    ring = []
    for token in (text or "").split():
        parts = token.split(",")
        ring.append([float(parts[0]), float(parts[1])])
    return ring


def _kml_properties(placemark) -> dict:
    properties = {}
    for child in placemark:
        if _local(child.tag) in ("name", "description"):
            properties[_local(child.tag)] = (child.text or "").strip()
    extended = _find(placemark, "ExtendedData")
    if extended is not None:
        for data in extended.iter():
            if _local(data.tag) != "Data":
                continue
            value = _find(data, "value")
            properties[data.get("name")] = (value.text or "").strip() if value is not None else ""
    return properties


def parse_kml(content: str) -> list[dict]:
    """Placemarks with a Polygon; ``ExtendedData`` fills the remaining properties."""
    try:
        root = ElementTree.fromstring(content.encode("utf-8"))
    except ElementTree.ParseError:
        raise DomainError("Invalid KML file", field="file")

    records = []
    placemarks = [el for el in root.iter() if _local(el.tag) == "Placemark"]
    for index, placemark in enumerate(placemarks):
        polygon = _find(placemark, "Polygon")
        if polygon is None:
            continue
        properties = _kml_properties(placemark)
        rings = []
        try:
            for boundary in polygon:
                coordinates = _find(boundary, "coordinates")
                if coordinates is None:
                    continue
                ring = _kml_ring(coordinates.text)
                if _local(boundary.tag) == "outerBoundaryIs":
                    rings.insert(0, ring)
                else:
                    rings.append(ring)
        except (ValueError, IndexError):
            records.append(_record(properties, index, error="Invalid polygon coordinates"))
            continue
        try:
            radius = _float(properties.get("coverage_radius", properties.get("coverageRadius")))
        except ValueError:
            radius = 0.0
        records.append(_record(
            properties, index,
            boundaries={"type": "Polygon", "coordinates": rings},
            coverage_radius=radius,
        ))
    return records


PARSERS = {
    "geojson": parse_geojson,
    "csv": parse_csv,
    "kml": parse_kml,
}


def parse_upload(uploaded_file, file_format: str) -> list[dict]:
    parser = PARSERS.get(file_format)
    if parser is None:
        raise DomainError("Format must be one of: geojson, csv, kml", field="format")
    return parser(read_upload(uploaded_file))


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

def to_feature_collection(areas) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {
                    "id": str(area.pk),
                    "name": area.name,
                    "code": area.code,
                    "description": area.description,
                    "type": area.type,
                    "status": area.status,
                    "coverage_radius": area.coverage_radius,
                },
                "geometry": area.boundaries,
            }
            for area in areas
        ],
    }


def to_geojson(areas) -> str:
    return json.dumps(to_feature_collection(areas), indent=2)


def to_csv(areas) -> str:
    return rows_to_csv(areas, EXPORT_COLUMNS)


def to_zip(areas) -> bytes:
    areas = list(areas)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("service-areas.geojson", to_geojson(areas))
        archive.writestr("service-areas.csv", to_csv(areas))
    return buffer.getvalue()


EXPORTERS = {
    "geojson": to_geojson,
    "csv": to_csv,
    "zip": to_zip,
}


def export_areas(areas, file_format: str):
    """Return ``(content, filename, content_type)`` for the requested format."""
    exporter = EXPORTERS.get(file_format)
    if exporter is None:
        raise DomainError("Format must be one of: geojson, csv, zip", field="format")
    filename = f"service-areas-{int(time.time() * 1000)}.{file_format}"
    return exporter(areas), filename, CONTENT_TYPES[file_format]
