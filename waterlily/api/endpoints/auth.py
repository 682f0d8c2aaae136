import logging

from fastapi import APIRouter, Depends, HTTPException, status

from waterlily.api.errors import internal_error
from waterlily.deps import SessionContext, get_identity_provider, require_session
from waterlily.identity import (
    EmailAlreadyExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    IssuedToken,
)
from waterlily.schemas.auth import SignInRequest, SignUpRequest, Token, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


def token_payload(issued: IssuedToken) -> Token:
    return Token(
        access_token=issued.token,
        expires_at=issued.expires_at,
        uid=issued.user.uid,
        email=issued.user.email,
        display_name=issued.user.display_name,
    )


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def sign_up(
    credentials: SignUpRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        user = await identity.create_user(
            credentials.email, credentials.password, credentials.display_name
        )
    except EmailAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    except Exception:
        raise internal_error("creating user")
    return token_payload(identity.create_id_token(user))


@router.post("/signin", response_model=Token)
async def sign_in(
    credentials: SignInRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        issued = await identity.sign_in(credentials.email, credentials.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception:
        raise internal_error("signing in")
    logger.info("User %s signed in", issued.user.uid)
    return token_payload(issued)


@router.get("/me", response_model=UserOut)
async def read_current_user(
    session: SessionContext = Depends(require_session),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        user = await identity.get_user(session.uid)
    except Exception:
        raise internal_error("loading current user")
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut(uid=user.uid, email=user.email, display_name=user.display_name)
