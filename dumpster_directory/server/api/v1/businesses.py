"""
Business Directory Endpoints.

Public reads are served from the in-memory business cache and fall back to
the database while the cache is not loaded. Writes go to the database and
are patched into the cache right away.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from dumpster_directory.core.cache import CacheSnapshot, build_snapshot
from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import BusinessFilters, UserRole
from dumpster_directory.core.models.io import (
    AdminBusinessUpdate,
    BusinessCreate,
    BusinessListResponse,
    BusinessRead,
    DuplicateCheckResponse,
)
from dumpster_directory.server.services.deps import AdminDep, CacheDep, CurrentUserDep, ReposDep

logger = get_logger(__name__)

router = APIRouter()


async def _list(filters: BusinessFilters, cache: CacheDep, repos: ReposDep) -> BusinessListResponse:
    if cache is not None and cache.is_initialized:
        return BusinessListResponse(
            businesses=[BusinessRead.model_validate(b) for b in cache.get_businesses(filters)],
            total=cache.count_businesses(filters),
            limit=filters.limit,
            offset=filters.offset,
            cached=True,
        )
    businesses, total = await repos.businesses.search(filters)
    return BusinessListResponse(
        businesses=[BusinessRead.model_validate(b) for b in businesses],
        total=total,
        limit=filters.limit,
        offset=filters.offset,
    )


async def _snapshot(cache: CacheDep, repos: ReposDep) -> CacheSnapshot:
    """The cached aggregates, or the same aggregates computed from the database."""
    if cache is not None and cache.is_initialized:
        return cache.snapshot
    businesses = await repos.businesses.list_for_cache()
    return build_snapshot([b.model_dump() for b in businesses])


@router.get(
    "",
    response_model=BusinessListResponse,
    summary="List Businesses",
    description="List directory businesses with optional category, location, featured and verified filters.",
    response_description="A page of businesses with the total count.",
)
async def list_businesses(
    cache: CacheDep,
    repos: ReposDep,
    category: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    zipcode: Optional[str] = None,
    featured: Optional[bool] = None,
    verified: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> BusinessListResponse:
    """
    List businesses.

    Results come in directory order: featured first, then by rating and
    review count. ``cached`` tells whether the cache answered.
    """
    filters = BusinessFilters(
        category=category,
        state=state,
        city=city,
        zipcode=zipcode,
        featured=featured,
        verified=verified,
        search=search,
        limit=limit,
        offset=offset,
    )
    return await _list(filters, cache, repos)


@router.get(
    "/search",
    response_model=BusinessListResponse,
    summary="Search Businesses",
    description="Free-text search over name, description, category and location.",
    response_description="A page of matching businesses.",
)
async def search_businesses(
    cache: CacheDep,
    repos: ReposDep,
    q: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    zipcode: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> BusinessListResponse:
    filters = BusinessFilters(
        search=q or None,
        city=city,
        state=state,
        zipcode=zipcode,
        category=category,
        limit=limit,
        offset=offset,
    )
    return await _list(filters, cache, repos)


@router.get(
    "/stats",
    summary="Directory Statistics",
    description="Totals across the directory: businesses, categories, states, cities, ratings.",
    response_description="Statistics object.",
)
async def directory_stats(cache: CacheDep, repos: ReposDep) -> Dict[str, Any]:
    return dict((await _snapshot(cache, repos)).stats)


@router.get(
    "/categories",
    summary="List Categories",
    description="Every category with the number of businesses in it.",
    response_description="List of categories with counts.",
)
async def list_categories(cache: CacheDep, repos: ReposDep) -> List[Dict[str, Any]]:
    return list((await _snapshot(cache, repos)).categories)


@router.get(
    "/states",
    summary="List States",
    description="Every state with its business count and number of distinct cities.",
    response_description="List of states with counts.",
)
async def list_states(cache: CacheDep, repos: ReposDep) -> List[Dict[str, Any]]:
    return list((await _snapshot(cache, repos)).states)


@router.get(
    "/states/{state}/cities",
    summary="List Cities in a State",
    description="Cities of one state with their business counts.",
    response_description="List of cities with counts.",
)
async def list_cities(state: str, cache: CacheDep, repos: ReposDep) -> List[Dict[str, Any]]:
    snapshot = await _snapshot(cache, repos)
    return [c for c in snapshot.cities if (c.get("state") or "").lower() == state.lower()]


@router.get(
    "/check",
    response_model=DuplicateCheckResponse,
    summary="Check for Duplicate",
    description="Look for a listing with the same name, city and state (case-insensitive).",
    response_description="Whether a listing exists, and the listing.",
)
async def check_duplicate(
    repos: ReposDep, name: str = Query(..., min_length=1), city: Optional[str] = None, state: Optional[str] = None
) -> DuplicateCheckResponse:
    existing = await repos.businesses.find_duplicate(name, city, state)
    return DuplicateCheckResponse(
        exists=existing is not None,
        business=BusinessRead.model_validate(existing) if existing is not None else None,
    )


@router.get(
    "/{business_id}",
    response_model=BusinessRead,
    summary="Get Business",
    description="Retrieve one business by ID.",
    response_description="The business.",
    responses={404: {"description": "Business not found"}},
)
async def get_business(business_id: str, cache: CacheDep, repos: ReposDep) -> BusinessRead:
    if cache is not None and cache.is_initialized:
        cached = cache.get_business(business_id)
        if cached is not None:
            return BusinessRead.model_validate(cached)
    business = await repos.businesses.get_by_id(business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return BusinessRead.model_validate(business)


@router.post(
    "",
    response_model=BusinessRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Business",
    description="Add a listing. Name, category, phone, address, city, state and zipcode are required.",
    response_description="The created business.",
    responses={409: {"description": "A listing with the same name and location exists"}},
)
async def create_business(
    payload: BusinessCreate, user: CurrentUserDep, repos: ReposDep, cache: CacheDep
) -> BusinessRead:
    """
    Create a business.

    Listings created by administrators are marked verified; all others start
    unclaimed and unverified.
    """
    if await repos.businesses.find_duplicate(payload.name, payload.city, payload.state) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Business already exists")
    is_admin = user.role == UserRole.admin.value
    business = await repos.businesses.create(
        Business(**payload.model_dump(), is_verified=is_admin, source="admin" if is_admin else "submission")
    )
    if cache is not None:
        cache.upsert(business)
    logger.info(f"Business {business.id} created by user {user.id}")
    return BusinessRead.model_validate(business)


@router.patch(
    "/{business_id}",
    response_model=BusinessRead,
    summary="Update Business",
    description="Update a listing. Owners may edit their own listing; administrators may edit any.",
    response_description="The updated business.",
    responses={403: {"description": "Not the owner"}, 404: {"description": "Business not found"}},
)
async def update_business(
    business_id: str, payload: AdminBusinessUpdate, user: CurrentUserDep, repos: ReposDep, cache: CacheDep
) -> BusinessRead:
    """
    Update a business.

    Only administrators may change rating, reviews and the verified and
    claimed flags; those fields are ignored for owners.
    """
    business = await repos.businesses.get_by_id(business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    is_admin = user.role == UserRole.admin.value
    if not is_admin and user.business_id != business_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to edit this business")

    changes = payload.model_dump(exclude_unset=True)
    if not is_admin:
        for field in ("rating", "reviews", "is_verified", "is_claimed"):
            changes.pop(field, None)
    for field, value in changes.items():
        setattr(business, field, value)
    business.updated_at = utc_now()
    business = await repos.businesses.update(business)
    if cache is not None:
        cache.upsert(business)
    return BusinessRead.model_validate(business)


@router.delete(
    "/{business_id}",
    summary="Delete Business",
    description="Delete a listing and everything that references it. Administrators only.",
    response_description="Confirmation.",
    responses={404: {"description": "Business not found"}},
)
async def delete_business(business_id: str, admin: AdminDep, repos: ReposDep, cache: CacheDep):
    deleted = await repos.businesses.delete_with_dependents([business_id])
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    await repos.session.commit()
    if cache is not None:
        cache.remove(business_id)
    logger.info(f"Business {business_id} deleted by admin {admin.id}")
    return {"success": True}
