"""
Authentication Endpoints.

Signup, login and logout, plus the signed-in user's own account. Tokens are
returned in the body and set as the ``auth-token`` cookie.
"""

from fastapi import APIRouter, HTTPException, Request, Response, status

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.io import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    SignupRequest,
    UserRead,
)
from dumpster_directory.server.services import auth as auth_service
from dumpster_directory.server.services.deps import CurrentUserDep, ReposDep, SettingsDep

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign Up",
    description="Create a customer or business owner account and sign it in.",
    response_description="The new account and its auth token.",
    responses={409: {"description": "Email already registered"}},
)
async def signup(
    payload: SignupRequest, response: Response, repos: ReposDep, app_settings: SettingsDep
) -> AuthResponse:
    """
    Create an account.

    Administrator accounts cannot be created here; use the ``create-admin``
    command instead.
    """
    email = payload.email.lower()
    if await repos.users.get_by_email(email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = repos.users.add(
        User(
            email=email,
            password_hash=auth_service.hash_password(payload.password),
            name=payload.name,
            phone=payload.phone,
            company_name=payload.company_name,
            role=payload.role.value,
        )
    )
    await repos.session.flush()
    token = await auth_service.issue_session(repos, user, app_settings.auth)
    await repos.session.commit()

    auth_service.set_auth_cookie(response, token, app_settings.auth)
    logger.info(f"New {user.role} account {user.id}")
    return AuthResponse(user=UserRead.model_validate(user), token=token)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log In",
    description="Check email and password and start a session.",
    response_description="The account and its auth token.",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(payload: LoginRequest, response: Response, repos: ReposDep, app_settings: SettingsDep) -> AuthResponse:
    """
    Log in.

    The token is valid for ``JWT_EXPIRE_DAYS`` days or until logout.
    """
    result = await auth_service.login(repos, payload.email.lower(), payload.password, app_settings.auth)
    if result is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    user, token = result
    auth_service.set_auth_cookie(response, token, app_settings.auth)
    return AuthResponse(user=UserRead.model_validate(user), token=token)


@router.post(
    "/logout",
    summary="Log Out",
    description="Revoke the current session and clear the auth cookie.",
    response_description="Confirmation.",
)
async def logout(request: Request, response: Response, repos: ReposDep, app_settings: SettingsDep):
    """
    Log out.

    Succeeds even without a session so clients can always clear their state.
    """
    token = auth_service.token_from_request(request, app_settings.auth)
    if token:
        await repos.sessions.revoke(token)
        await repos.session.commit()
    auth_service.clear_auth_cookie(response, app_settings.auth)
    return {"success": True}


@router.get(
    "/me",
    response_model=UserRead,
    summary="Current User",
    description="Return the signed-in account.",
    response_description="The account.",
    responses={401: {"description": "Not authenticated"}},
)
async def me(user: CurrentUserDep) -> UserRead:
    return UserRead.model_validate(user)


@router.post(
    "/change-password",
    summary="Change Password",
    description="Replace the password after checking the current one.",
    response_description="Confirmation.",
    responses={400: {"description": "Current password is incorrect"}},
)
async def change_password(payload: ChangePasswordRequest, user: CurrentUserDep, repos: ReposDep):
    if not auth_service.verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.password_hash = auth_service.hash_password(payload.new_password)
    await repos.users.update(user)
    logger.info(f"User {user.id} changed password")
    return {"success": True}


@router.patch(
    "/profile",
    response_model=UserRead,
    summary="Update Profile",
    description="Update name, phone and company name of the signed-in account.",
    response_description="The updated account.",
)
async def update_profile(payload: ProfileUpdate, user: CurrentUserDep, repos: ReposDep) -> UserRead:
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    user.updated_at = utc_now()
    user = await repos.users.update(user)
    return UserRead.model_validate(user)
