"""
Bearer-token verification against the identity provider's JWKS.

The key set is fetched lazily, cached in-process and refreshed when a
token names a ``kid`` the cache does not know (key rotation).  Only
RS256 is accepted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date
from typing import Any, Callable, Optional

import httpx
import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ridehail.domain.enums import Gender
from ridehail.domain.exceptions import InvalidInputError, UnauthenticatedError

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PublicMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    gender: Optional[Gender] = None
    emergency_contact_name: Optional[str] = Field(
        None, alias="userEmergencyContactName"
    )
    emergency_contact_number: Optional[str] = Field(
        None, alias="userEmergencyContactNumber"
    )
    referral_code: Optional[str] = Field(None, alias="referralCode")
    referred_by: Optional[str] = Field(None, alias="referredBy")

    @field_validator("*", mode="before")
    @classmethod
    def _strip_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _upper_gender(cls, value):
        return value.upper() if isinstance(value, str) else value


class IdentityClaims(BaseModel):
    """The subset of token claims the service reads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    phone_number: str = Field(alias="phoneNumber")
    user_type: str = Field(alias="userType")
    email: Optional[str] = None
    public_metadata: PublicMetadata = Field(default_factory=PublicMetadata)

    @field_validator("sub", "first_name", "last_name", "phone_number", "user_type",
                     "email", mode="before")
    @classmethod
    def _strip_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("public_metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value):
        return {} if value is None else value


def parse_claims(claims: dict[str, Any]) -> IdentityClaims:
    """Validate raw claims; missing or malformed fields are a client error."""
    try:
        return IdentityClaims.model_validate(claims)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise InvalidInputError(
            f"Required fields are missing or invalid: {', '.join(fields)}"
        ) from exc


def strip_bearer(token: str) -> str:
    token = token.strip()
    if token[:7].lower() == "bearer ":
        token = token[7:].strip()
    return token


class IdentityVerifier:
    """
    An unknown ``kid`` triggers at most one JWKS fetch per
    ``min_refresh_interval`` seconds, so tokens carrying made-up key ids
    cannot turn every request into a round trip to the issuer.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        jwks_url: str,
        min_refresh_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.jwks_url = jwks_url
        self.min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._last_refresh: Optional[float] = None
        self._keys: dict[str, jwt.PyJWK] = {}
        self._refresh_lock = asyncio.Lock()

    def _refresh_allowed(self) -> bool:
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self.min_refresh_interval

    async def refresh_keys(self) -> None:
        # failed fetches count too; an outage is not retried on every request
        self._last_refresh = self._clock()
        try:
            response = await self.client.get(self.jwks_url)
            response.raise_for_status()
            key_set = jwt.PyJWKSet.from_dict(response.json())
        except (httpx.HTTPError, ValueError, jwt.PyJWKSetError) as exc:
            logger.error("JWKS fetch from %s failed: %s", self.jwks_url, exc)
            raise UnauthenticatedError("Signing keys unavailable") from exc

        self._keys = {k.key_id: k for k in key_set.keys if k.key_id}
        logger.info("JWKS refreshed: %d keys", len(self._keys))

    async def _signing_key(self, kid: Optional[str]) -> jwt.PyJWK:
        if kid is None:
            raise UnauthenticatedError("Token header has no key id")
        if kid not in self._keys:
            async with self._refresh_lock:
                # another request may have refreshed while we waited
                if kid not in self._keys:
                    if self._refresh_allowed():
                        await self.refresh_keys()
                    else:
                        logger.warning("Unknown key id %s; JWKS refresh throttled", kid)
        key = self._keys.get(kid)
        if key is None:
            raise UnauthenticatedError(f"Unknown signing key: {kid}")
        return key

    async def verify(self, token: str) -> dict[str, Any]:
        """Return the full claims mapping or raise ``UnauthenticatedError``."""
        if not token:
            raise UnauthenticatedError("Missing token")
        token = strip_bearer(token)

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise UnauthenticatedError("Malformed token") from exc
        if header.get("alg") != ALGORITHM:
            raise UnauthenticatedError(f"Unsupported algorithm: {header.get('alg')}")

        key = await self._signing_key(header.get("kid"))
        try:
            return jwt.decode(
                token,
                key.key,
                algorithms=[ALGORITHM],
                options={"verify_aud": False},
            )
        except jwt.InvalidTokenError as exc:
            raise UnauthenticatedError(f"Invalid or expired token: {exc}") from exc

    async def verify_claims(self, token: str) -> IdentityClaims:
        return parse_claims(await self.verify(token))
