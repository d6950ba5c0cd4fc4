"""
Business CSV/JSON record format.

The import and export format has fixed columns. Multi-valued fields
(``email``, ``services``, ``gallery_urls``) are ``;`` separated; the first
email belongs to the business and the rest become claim contacts.
"""

from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

from dumpster_directory.core.database.entities.businesses import Business

CSV_COLUMNS: List[str] = [
    "name",
    "phone",
    "email",
    "website",
    "address",
    "city",
    "state",
    "zipcode",
    "category",
    "rating",
    "reviews",
    "latitude",
    "longitude",
    "hours",
    "services",
    "description",
    "logo_url",
    "gallery_urls",
]

DEFAULT_CATEGORY = "Dumpster Rental"


@dataclass
class BusinessRecord:
    """One parsed import row."""

    fields: Dict[str, Any]
    emails: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.fields.get("name") or ""


def split_multi(value: Any) -> List[str]:
    """Split a ``;`` separated cell (or pass a JSON list through), dropping blanks."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [part.strip() for part in str(value).split(";") if part.strip()]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _float(value: Any) -> Optional[float]:
    text = _text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return None if number != number else number  # NaN


def _int(value: Any) -> int:
    number = _float(value)
    return int(number) if number is not None else 0


def parse_record(raw: Dict[str, Any], default_category: str = DEFAULT_CATEGORY) -> BusinessRecord:
    """Map a CSV row or JSON object onto business fields.

    Raises:
        ValueError: The record has no name
    """
    name = _text(raw.get("name"))
    if not name:
        raise ValueError("Missing business name")

    emails = [e for e in split_multi(raw.get("email")) if "@" in e]
    fields: Dict[str, Any] = {
        "name": name,
        "phone": _text(raw.get("phone")),
        "email": emails[0] if emails else None,
        "website": _text(raw.get("website")),
        "address": _text(raw.get("address")),
        "city": _text(raw.get("city")),
        "state": _text(raw.get("state")),
        "zipcode": _text(raw.get("zipcode")),
        "category": _text(raw.get("category")) or default_category,
        "rating": _float(raw.get("rating")) or 0.0,
        "reviews": _int(raw.get("reviews")),
        "latitude": _float(raw.get("latitude")),
        "longitude": _float(raw.get("longitude")),
        "hours": raw.get("hours") if isinstance(raw.get("hours"), (dict, list)) else _text(raw.get("hours")),
        "services": split_multi(raw.get("services")) or None,
        "description": _text(raw.get("description")),
        "logo_url": _text(raw.get("logo_url")),
        "gallery_images": split_multi(raw.get("gallery_urls") or raw.get("gallery_images")) or None,
        "source": _text(raw.get("source")) or "import",
        "is_claimed": False,
        "is_verified": False,
    }
    return BusinessRecord(fields=fields, emails=emails)


def read_records(path: Path) -> List[Dict[str, Any]]:
    """Read raw records from a ``.csv`` or ``.json`` file."""
    content = path.read_text(encoding="utf-8-sig")
    if path.suffix.lower() == ".json":
        return parse_json(content)
    return parse_csv(content)


def parse_csv(content: str) -> List[Dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(content))
    return [
        {(key or "").strip(): (value or "").strip() for key, value in row.items()}
        for row in reader
        if any((value or "").strip() for value in row.values() if isinstance(value, str))
    ]


def parse_json(content: str) -> List[Dict[str, Any]]:
    """Parse a JSON array of records (or ``{"businesses": [...]}``); bare ``NaN`` becomes null."""
    data = json.loads(re.sub(r":\s*NaN\b", ": null", content))
    if isinstance(data, dict):
        data = data.get("businesses") or []
    if not isinstance(data, list):
        raise ValueError("JSON import must be a list of business records")
    return [record for record in data if isinstance(record, dict)]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def business_row(business: Business, contact_emails: Iterable[str] = ()) -> List[str]:
    """Export row of a business; its own email first, then distinct contact emails."""
    emails: List[str] = []
    for email in [business.email, *contact_emails]:
        if email and email not in emails:
            emails.append(email)
    values = {
        "name": business.name,
        "phone": business.phone,
        "email": emails,
        "website": business.website,
        "address": business.address,
        "city": business.city,
        "state": business.state,
        "zipcode": business.zipcode,
        "category": business.category or DEFAULT_CATEGORY,
        "rating": business.rating if business.rating else "",
        "reviews": business.reviews or 0,
        "latitude": business.latitude,
        "longitude": business.longitude,
        "hours": business.hours,
        "services": business.services,
        "description": business.description,
        "logo_url": business.logo_url,
        "gallery_urls": business.gallery_images,
    }
    return [_cell(values[column]) for column in CSV_COLUMNS]


def write_csv(stream: TextIO, header: List[str], rows: Iterable[List[str]]) -> int:
    """Write a header and rows with standard CSV quoting; returns the row count."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(header)
    count = 0
    for row in rows:
        writer.writerow(row)
        count += 1
    return count


def render_csv(header: List[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    write_csv(buffer, header, rows)
    return buffer.getvalue()
