"""
ZIP Code Lookup Endpoint.

Resolves a US ZIP code to a city and state for the quote and search forms.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from dumpster_directory.core.geo import clean_zip
from dumpster_directory.server.services.deps import ZipLookupDep

router = APIRouter()


@router.get(
    "",
    summary="Look Up ZIP Code",
    description="Resolve a ZIP code to city and state through public geocoders, with a static fallback.",
    response_description="City and state; found is false when only the state could be guessed.",
    responses={400: {"description": "ZIP code missing or shorter than five digits"}},
)
async def lookup_zip(lookup: ZipLookupDep, zip: Optional[str] = None):
    """
    Look up a ZIP code.

    Non-digits are stripped and only the first five digits are used. Answers
    are cached for a day.
    """
    if not zip:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ZIP code is required")
    if len(clean_zip(zip)) != 5:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ZIP code must have five digits")
    location = await lookup.lookup(zip)
    return location.to_dict()
