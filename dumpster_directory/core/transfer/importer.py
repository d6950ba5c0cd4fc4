"""
Bulk business import and export.

Import rules:
- A record whose ``lower(name)_city_state`` key already exists, in the
  database or earlier in the same file, is skipped.
- The first email goes on the business. When a record carries several
  emails, a claim campaign is created and every email becomes a contact.
- A failing record is counted, logged and rolled back; the run continues.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, TextIO

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.claims import ClaimCampaign
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.database.repositories.businesses import dedupe_key

from .csv_io import CSV_COLUMNS, DEFAULT_CATEGORY, business_row, parse_record, write_csv

logger = logging.getLogger(__name__)

IMPORT_CLAIM_TTL_DAYS = 30
MAX_ERROR_MESSAGES = 10


@dataclass
class ImportReport:
    imported: int = 0
    skipped: int = 0
    errors: int = 0
    cleared: int = 0
    error_messages: List[str] = field(default_factory=list)
    business_ids: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors += 1
        if len(self.error_messages) < MAX_ERROR_MESSAGES:
            self.error_messages.append(message)

    @property
    def message(self) -> str:
        return f"Imported {self.imported} businesses, skipped {self.skipped} duplicates, {self.errors} errors"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": self.errors,
            "errorMessages": self.error_messages,
            "message": self.message,
        }


async def import_businesses(
    repos: RepositoryBundle,
    records: Iterable[Dict[str, Any]],
    *,
    clear: bool = False,
    limit: Optional[int] = None,
    default_category: str = DEFAULT_CATEGORY,
) -> ImportReport:
    """Insert raw records as new, unclaimed businesses.

    Args:
        repos: Repositories bound to one session
        records: Raw CSV rows or JSON objects
        clear: Delete every existing business (and dependents) first
        limit: Stop after this many records
        default_category: Category for records without one

    Returns:
        ImportReport with counts and the first error messages
    """
    report = ImportReport()
    session = repos.session

    if clear:
        report.cleared = await repos.businesses.delete_all()
        await session.commit()
        logger.info(f"Cleared {report.cleared} existing businesses before import")

    existing = await repos.businesses.dedupe_keys()

    for index, raw in enumerate(records, start=1):
        if limit is not None and index > limit:
            break
        label = raw.get("name") or f"row {index}"
        try:
            record = parse_record(raw, default_category)
        except ValueError as e:
            report.add_error(f"Row {index}: {e}")
            continue

        key = dedupe_key(record.fields["name"], record.fields["city"], record.fields["state"])
        if key in existing:
            report.skipped += 1
            logger.debug(f"Skipped duplicate: {record.name}")
            continue

        try:
            business = Business(**record.fields)
            session.add(business)
            await session.flush()
            if len(record.emails) > 1:
                campaign = ClaimCampaign(
                    business_id=business.id,
                    claim_token=secrets.token_urlsafe(24),
                    email_sent_to=record.emails[0],
                    campaign_name="Import",
                    expires_at=utc_now() + timedelta(days=IMPORT_CLAIM_TTL_DAYS),
                )
                session.add(campaign)
                await session.flush()
                for position, email in enumerate(dict.fromkeys(record.emails)):
                    repos.claims.add_contact(campaign.id, email, is_primary=position == 0)
            await session.commit()
        except Exception as e:
            await session.rollback()
            report.add_error(f"Row {index} ({label}): {e}")
            logger.warning(f"Error importing {label}: {e}")
            continue

        existing.add(key)
        report.imported += 1
        report.business_ids.append(business.id)
        if report.imported % 100 == 0:
            logger.info(f"Imported {report.imported} businesses...")

    logger.info(report.message)
    return report


async def export_businesses(repos: RepositoryBundle, stream: TextIO) -> int:
    """Write every business as CSV, merging claim contact emails into the email column.

    Returns:
        Number of businesses written
    """
    businesses = await repos.businesses.list_ordered()
    contact_emails = await repos.claims.emails_by_business()
    rows = (business_row(b, sorted(set(contact_emails.get(b.id, [])))) for b in businesses)
    count = write_csv(stream, CSV_COLUMNS, rows)
    logger.info(f"Exported {count} businesses")
    return count
