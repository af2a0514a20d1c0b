"""Authentication router."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import JSONResponse

from credential_service.dependencies.auth import get_account_service, get_current_account
from credential_service.exceptions import NotVerifiedError
from credential_service.responses import error_response
from credential_service.schemas.auth import (
    AccountInfo,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
)
from credential_service.services.account_service import AccountService, AccountView

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=AccountInfo, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    service: AccountService = Depends(get_account_service),
) -> AccountInfo:
    """Register a new account and send verification email."""
    account = service.register(data.email, data.password, schedule=background_tasks.add_task)
    return AccountInfo.model_validate(account)


@router.get("/verify", response_model=MessageResponse)
def verify_email(
    token: str = Query(""),
    service: AccountService = Depends(get_account_service),
) -> dict:
    """Verify email with token from email link."""
    service.verify(token)
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=LoginResponse)
def login(
    data: LoginRequest,
    background_tasks: BackgroundTasks,
    service: AccountService = Depends(get_account_service),
) -> LoginResponse | JSONResponse:
    """Login and get a session token."""
    try:
        result = service.login(data.email, data.password, schedule=background_tasks.add_task)
    except NotVerifiedError as e:
        # Error responses from exception handlers drop background tasks; keep the resend
        return error_response(e, background=background_tasks)
    return LoginResponse(token=result.token, id=result.account.id, email=result.account.email)


@router.get("/me", response_model=AccountInfo)
def get_me(current_account: AccountView = Depends(get_current_account)) -> AccountInfo:
    """Get the current authenticated account's information."""
    return AccountInfo.model_validate(current_account)
