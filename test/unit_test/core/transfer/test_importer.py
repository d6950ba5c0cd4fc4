import csv
import io

import pytest

from dumpster_directory.core.transfer import CSV_COLUMNS, export_businesses, import_businesses
from test.unit_test.fixtures import make_business, make_campaign

pytestmark = pytest.mark.asyncio


async def test_import_inserts_and_skips_duplicates(repos):
    await make_business(repos, "Acme Dumpsters")
    records = [
        {"name": "acme dumpsters", "city": "Austin", "state": "TX"},
        {"name": "Budget Bins", "city": "Dallas", "state": "TX"},
        {"name": "Budget Bins", "city": "Dallas", "state": "TX"},
        {"name": "", "city": "Dallas"},
        {"name": "Mile High Bins", "city": "Denver", "state": "CO"},
    ]

    report = await import_businesses(repos, records)

    assert report.imported == 2
    assert report.skipped == 2
    assert report.errors == 1
    assert report.error_messages == ["Row 4: Missing business name"]
    assert await repos.businesses.count() == 3
    assert report.to_dict()["message"] == "Imported 2 businesses, skipped 2 duplicates, 1 errors"


async def test_import_with_several_emails_creates_claim_campaign(repos):
    report = await import_businesses(
        repos,
        [{"name": "Acme", "city": "Austin", "state": "TX", "email": "info@acme.test;sales@acme.test"}],
    )

    business = await repos.businesses.get_by_id(report.business_ids[0])
    assert business.email == "info@acme.test"
    campaign = await repos.claims.latest_for_business(business.id)
    assert campaign is not None
    contacts = (await repos.claims.contacts_for([campaign.id]))[campaign.id]
    assert [(c.email, c.is_primary) for c in contacts] == [("info@acme.test", True), ("sales@acme.test", False)]


async def test_import_single_email_creates_no_campaign(repos):
    report = await import_businesses(repos, [{"name": "Acme", "email": "info@acme.test"}])
    assert await repos.claims.latest_for_business(report.business_ids[0]) is None


async def test_import_clear_and_limit(repos):
    await make_business(repos, "Old Listing")

    report = await import_businesses(
        repos,
        [{"name": f"Business {i}", "city": "Austin", "state": "TX"} for i in range(5)],
        clear=True,
        limit=3,
    )

    assert report.cleared == 1
    assert report.imported == 3
    assert await repos.businesses.count() == 3


async def test_export_writes_every_business(repos):
    acme = await make_business(repos, "Acme Dumpsters", email="info@acme.test")
    await make_business(repos, "Budget Bins", city="Dallas")
    campaign = await make_campaign(repos, acme)
    repos.claims.add_contact(campaign.id, "owner@acme.test", is_primary=True)
    await repos.session.commit()

    stream = io.StringIO()
    count = await export_businesses(repos, stream)

    assert count == 2
    rows = list(csv.DictReader(io.StringIO(stream.getvalue())))
    assert list(rows[0].keys()) == CSV_COLUMNS
    assert rows[0]["name"] == "Acme Dumpsters"
    assert rows[0]["email"] == "info@acme.test; owner@acme.test"
    assert rows[1]["city"] == "Dallas"


async def test_exported_csv_imports_cleanly(repos):
    await make_business(repos, "Acme Dumpsters", services=["10 Yard"])
    stream = io.StringIO()
    await export_businesses(repos, stream)

    records = list(csv.DictReader(io.StringIO(stream.getvalue())))
    report = await import_businesses(repos, records, clear=True)

    assert report.imported == 1
    business = (await repos.businesses.list())[0]
    assert business.services == ["10 Yard"]
    assert business.phone == "(555) 123-4567"
