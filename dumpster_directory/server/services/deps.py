"""
API Dependencies.

Request-scoped dependencies shared by the routers: settings, the database
session and repositories, the business cache and ZIP lookup held on
``app.state``, the Stripe gateway, and the signed-in user with role checks.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_directory.core.billing import StripeGateway
from dumpster_directory.core.cache import BusinessCache
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories import RepositoryBundle, build_repositories
from dumpster_directory.core.database.session import get_session
from dumpster_directory.core.geo import ZipCodeLookup
from dumpster_directory.core.models.domain import UserRole
from dumpster_directory.server.core.config import Settings, settings

from .auth import authenticate, token_from_request


def get_settings() -> Settings:
    return settings


SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_repos(session: SessionDep) -> RepositoryBundle:
    return build_repositories(session)


ReposDep = Annotated[RepositoryBundle, Depends(get_repos)]


def get_cache(request: Request) -> Optional[BusinessCache]:
    """The application's business cache, or None when it was never started."""
    return getattr(request.app.state, "business_cache", None)


CacheDep = Annotated[Optional[BusinessCache], Depends(get_cache)]


def get_zip_lookup(request: Request) -> ZipCodeLookup:
    lookup = getattr(request.app.state, "zip_lookup", None)
    if lookup is None:
        geocoding = settings.geocoding
        lookup = ZipCodeLookup(
            google_api_key=geocoding.google_maps_api_key, timeout_seconds=geocoding.timeout_seconds
        )
        request.app.state.zip_lookup = lookup
    return lookup


ZipLookupDep = Annotated[ZipCodeLookup, Depends(get_zip_lookup)]


def get_gateway(app_settings: SettingsDep) -> StripeGateway:
    stripe_config = app_settings.stripe
    return StripeGateway(
        secret_key=stripe_config.secret_key,
        webhook_secret=stripe_config.webhook_secret,
        publishable_key=stripe_config.publishable_key,
    )


GatewayDep = Annotated[StripeGateway, Depends(get_gateway)]


async def get_optional_user(request: Request, repos: ReposDep, app_settings: SettingsDep) -> Optional[User]:
    auth_config = app_settings.auth
    return await authenticate(repos, token_from_request(request, auth_config), auth_config)


OptionalUserDep = Annotated[Optional[User], Depends(get_optional_user)]


async def get_current_user(user: OptionalUserDep) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


async def require_business_owner(user: CurrentUserDep) -> User:
    """A business owner (or an admin acting as one) linked to a listing."""
    if user.role not in (UserRole.business_owner.value, UserRole.admin.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Business owner access required")
    if not user.business_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No business linked to this account")
    return user


BusinessOwnerDep = Annotated[User, Depends(require_business_owner)]


async def require_admin(user: CurrentUserDep) -> User:
    if user.role != UserRole.admin.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


AdminDep = Annotated[User, Depends(require_admin)]
