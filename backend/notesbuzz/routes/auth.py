"""Auth API routes."""
import logging

from fastapi import APIRouter, Depends

from notesbuzz.exceptions import Unauthorized
from notesbuzz.schemas.auth import LoginRequest, MessageResponse, SignupRequest
from notesbuzz.services.credential_store import CredentialStore, get_credential_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=MessageResponse, status_code=201)
async def signup(
    body: SignupRequest,
    store: CredentialStore = Depends(get_credential_store),
):
    """Create a user account."""
    await store.create(body.username, body.email, body.password)
    return {"message": "User created successfully"}


@router.post("/login", response_model=MessageResponse)
async def login(
    body: LoginRequest,
    store: CredentialStore = Depends(get_credential_store),
):
    """Check credentials. No token or session is issued."""
    if not await store.verify(body.username, body.password):
        logger.info("Failed login for username=%r", body.username)
        raise Unauthorized("Invalid credentials")
    return {"message": "Login successful"}
