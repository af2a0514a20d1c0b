"""Authentication dependencies for protected routes."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from credential_service.exceptions import NotFoundError
from credential_service.services.account_service import AccountService, AccountView
from credential_service.services.session_issuer import SessionIssuer

security = HTTPBearer()


def get_account_service(request: Request) -> AccountService:
    """Account service built by the application lifespan."""
    return request.app.state.account_service


def get_session_issuer(request: Request) -> SessionIssuer:
    """Session issuer built by the application lifespan."""
    return request.app.state.session_issuer


def get_current_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    issuer: SessionIssuer = Depends(get_session_issuer),
    service: AccountService = Depends(get_account_service),
) -> AccountView:
    """
    Get current authenticated account from its session token.

    Usage:
        @router.get("/protected")
        def protected_route(account: AccountView = Depends(get_current_account)):
            return {"account_id": account.id}
    """
    payload = issuer.decode_token(credentials.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return service.get_account(payload.get("sub", ""))
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
