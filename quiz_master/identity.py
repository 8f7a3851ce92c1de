# identity.py
import logging
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from .models.user import ProviderUser

logger = logging.getLogger(__name__)

class IdentityError(Exception):
    """The identity provider rejected a token or could not be reached."""

class SupabaseIdentity:
    """Token verification and user metadata against Supabase Auth.

    With a JWT secret configured, tokens are verified locally (HS256, the
    provider's signing scheme). Otherwise each token is checked by the
    provider's ``/auth/v1/user`` endpoint.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        jwt_secret: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url.rstrip("/") if url else None
        self.service_role_key = service_role_key
        self.jwt_secret = jwt_secret
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    def _admin_headers(self, bearer: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {bearer}", "apikey": self.service_role_key or ""}

    async def get_user(self, token: str) -> ProviderUser:
        if self.jwt_secret:
            return self._decode(token)
        return await self._fetch_user(token)

    def _decode(self, token: str) -> ProviderUser:
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=["HS256"], audience="authenticated")
        except JWTError as e:
            raise IdentityError(f"JWT rejected: {e}") from e
        return _provider_user(payload.get("sub"), payload)

    async def _fetch_user(self, token: str) -> ProviderUser:
        if not self.url:
            raise IdentityError("SUPABASE_URL is not configured")
        try:
            response = await self.client.get(f"{self.url}/auth/v1/user", headers=self._admin_headers(token))
        except httpx.HTTPError as e:
            raise IdentityError(f"Identity provider unreachable: {e}") from e
        if response.status_code != 200:
            raise IdentityError(f"Identity provider returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise IdentityError(f"Identity provider returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise IdentityError("Identity provider returned an unexpected body")
        return _provider_user(data.get("id"), data)

    async def update_user_metadata(self, user_id: str, metadata: Dict[str, Any]) -> bool:
        """Write user_metadata through the admin API. Returns False when not configured."""
        if not (self.url and self.service_role_key):
            logger.warning("Supabase admin API not configured, skipping metadata update")
            return False
        try:
            response = await self.client.put(
                f"{self.url}/auth/v1/admin/users/{user_id}",
                headers=self._admin_headers(self.service_role_key),
                json={"user_metadata": metadata},
            )
        except httpx.HTTPError as e:
            raise IdentityError(f"Identity provider unreachable: {e}") from e
        if response.status_code >= 400:
            raise IdentityError(f"Identity provider returned {response.status_code}: {response.text}")
        return True

def _provider_user(user_id: Optional[str], claims: Dict[str, Any]) -> ProviderUser:
    email = claims.get("email")
    if not user_id or not email:
        raise IdentityError("Identity is missing subject or email")
    metadata = claims.get("user_metadata") or {}
    return ProviderUser(id=user_id, email=email, username=metadata.get("username") or None)
