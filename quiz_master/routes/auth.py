# routes/auth.py
from datetime import datetime, timezone
from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
import logging
from sqlalchemy.exc import IntegrityError

from ..dependencies import get_identity, get_storage
from ..identity import IdentityError, SupabaseIdentity
from ..models.user import ProfileUpdate, User
from ..storage import QuizStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])
bearer_scheme = HTTPBearer(auto_error=False)

def _unauthorized() -> HTTPException:
    # Same response for every failure so callers cannot tell them apart
    return HTTPException(status_code=401, detail="Invalid token", headers={"WWW-Authenticate": "Bearer"})

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: SupabaseIdentity = Depends(get_identity),
    storage: QuizStorage = Depends(get_storage),
) -> User:
    if credentials is None or not credentials.credentials:
        logger.warning("Missing or malformed Authorization header")
        raise _unauthorized()
    try:
        provider_user = await identity.get_user(credentials.credentials)
    except IdentityError as e:
        logger.warning(f"Token verification failed: {e}")
        raise _unauthorized()
    return await storage.sync_user(provider_user)

@router.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

@router.get("/user", response_model=User)
async def get_current_user_endpoint(current_user: User = Depends(get_current_user)):
    return current_user

@router.put("/user/profile")
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    identity: SupabaseIdentity = Depends(get_identity),
    storage: QuizStorage = Depends(get_storage),
):
    logger.info(f"Updating profile for user {current_user.id}")
    if not profile.username:
        raise HTTPException(status_code=400, detail="Username is required")
    owner = await storage.get_user_by_username(profile.username)
    if owner and owner.id != current_user.id:
        raise HTTPException(status_code=400, detail="Username already taken")
    # Local row changes only after the provider accepts the update
    try:
        await identity.update_user_metadata(current_user.id, {"username": profile.username})
    except IdentityError as e:
        logger.error(f"Provider metadata update failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    try:
        user = await storage.update_username(current_user.id, profile.username)
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Username already taken")
    return {"message": "Profile updated successfully", "user": user}
