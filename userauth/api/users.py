"""User account API endpoints: register, login, logout, token refresh."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status

from userauth.api.dependencies import (
    get_current_user,
    get_registration_service,
    get_session_service,
)
from userauth.models.auth import LoginData, LoginRequest, RefreshRequest, TokenPair
from userauth.models.response import ApiResponse
from userauth.models.user import User
from userauth.services.registration_service import RegistrationService
from userauth.services.session_service import (
    REFRESH_COOKIE_NAME,
    SessionService,
    clear_token_cookies,
    set_token_cookies,
)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _first(files: Optional[list[UploadFile]]) -> Optional[UploadFile]:
    """Return the first uploaded file of a multi-file field, if any."""
    if not files:
        return None
    return files[0]


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    full_name: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[list[UploadFile]] = File(None),
    cover_image: Optional[list[UploadFile]] = File(None, alias="coverImage"),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> ApiResponse[User]:
    """Register a new user from a multipart form.

    Returns:
        Envelope with the created user (no password or refresh token)

    Raises:
        ValidationError 400: Blank fields or missing avatar
        ConflictError 409: Username or email already taken
    """
    user = await registration_service.register(
        full_name=full_name,
        email=email,
        username=username,
        password=password,
        avatar=_first(avatar),
        cover_image=_first(cover_image),
    )
    return ApiResponse(status_code=200, data=user, message="User registered Successfully")


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    session_service: SessionService = Depends(get_session_service),
) -> ApiResponse[LoginData]:
    """Login with username or email and password.

    Sets the ``accessToken`` and ``refreshToken`` cookies and also returns
    both tokens in the body.

    Raises:
        ValidationError 400: Neither username nor email given
        NotFoundError 404: No such user
        AuthenticationError 401: Wrong password
    """
    data = await session_service.login(
        username=request.username,
        email=request.email,
        password=request.password,
    )
    set_token_cookies(
        response,
        TokenPair(access_token=data.access_token, refresh_token=data.refresh_token),
    )
    return ApiResponse(status_code=200, data=data, message="User logged in successfully")


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service),
) -> ApiResponse[dict]:
    """Invalidate the stored refresh token and clear both cookies."""
    await session_service.logout(current_user.id)
    clear_token_cookies(response)
    return ApiResponse(status_code=200, data={}, message="User logged out successfully")


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
    session_service: SessionService = Depends(get_session_service),
) -> ApiResponse[TokenPair]:
    """Exchange a refresh token (cookie or body) for a new token pair.

    Raises:
        AuthenticationError 401: Missing, invalid, or already used token
    """
    incoming = request.cookies.get(REFRESH_COOKIE_NAME)
    if not incoming and body is not None:
        incoming = body.refresh_token

    tokens = await session_service.refresh(incoming)
    set_token_cookies(response, tokens)
    return ApiResponse(status_code=200, data=tokens, message="Access token refreshed")


@router.get("/current-user")
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[User]:
    """Get the authenticated user."""
    return ApiResponse(
        status_code=200,
        data=current_user,
        message="Current user fetched successfully",
    )
