"""Bearer-token verification against a mocked JWKS endpoint."""

import httpx
import jwt
import pytest

from ridehail.domain.enums import Gender
from ridehail.domain.exceptions import InvalidInputError, UnauthenticatedError
from ridehail.infrastructure.identity import IdentityVerifier, parse_claims, strip_bearer
from tests.factories import JWKS_URL, IdentityProvider, identity_claims


class TestVerify:
    @pytest.mark.asyncio
    async def test_valid_token_returns_claims(self, identity_provider, verifier):
        token = identity_provider.token(identity_claims("user_9"))

        claims = await verifier.verify(token)

        assert claims["sub"] == "user_9"
        assert claims["userType"] == "rider"

    @pytest.mark.asyncio
    async def test_bearer_prefix_is_accepted(self, identity_provider, verifier):
        token = identity_provider.token(identity_claims())
        claims = await verifier.verify(f"Bearer {token}")
        assert claims["sub"] == "user_1"

    @pytest.mark.asyncio
    async def test_keys_are_cached(self, identity_provider, verifier):
        await verifier.verify(identity_provider.token(identity_claims()))
        await verifier.verify(identity_provider.token(identity_claims("user_2")))
        assert identity_provider.jwks_requests == 1

    @pytest.mark.asyncio
    async def test_unknown_kid_refreshes_keys(self, identity_provider, verifier):
        await verifier.verify(identity_provider.token(identity_claims()))

        identity_provider.add_key("key-2")
        claims = await verifier.verify(
            identity_provider.token(identity_claims("user_2"), kid="key-2")
        )

        assert claims["sub"] == "user_2"
        assert identity_provider.jwks_requests == 2

    @pytest.mark.asyncio
    async def test_kid_missing_after_refresh_is_rejected(self, verifier):
        stranger = IdentityProvider()
        stranger.add_key("ghost")
        with pytest.raises(UnauthenticatedError):
            await verifier.verify(stranger.token(identity_claims(), kid="ghost"))

    @pytest.mark.asyncio
    async def test_foreign_signature_is_rejected(self, verifier):
        # same kid, different private key
        stranger = IdentityProvider()
        with pytest.raises(UnauthenticatedError):
            await verifier.verify(stranger.token(identity_claims()))

    @pytest.mark.asyncio
    async def test_expired_token_is_rejected(self, identity_provider, verifier):
        token = identity_provider.token(identity_claims(), expires_in=-60)
        with pytest.raises(UnauthenticatedError):
            await verifier.verify(token)

    @pytest.mark.asyncio
    async def test_symmetric_algorithm_is_rejected(self, identity_provider, verifier):
        token = jwt.encode(
            identity_claims(),
            "a-shared-secret-that-is-long-enough-for-hs256",
            algorithm="HS256",
            headers={"kid": "key-1"},
        )
        with pytest.raises(UnauthenticatedError):
            await verifier.verify(token)
        assert identity_provider.jwks_requests == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["", "not-a-jwt", "Bearer "])
    async def test_garbage_is_rejected(self, verifier, token):
        with pytest.raises(UnauthenticatedError):
            await verifier.verify(token)

    @pytest.mark.asyncio
    async def test_jwks_outage_is_unauthenticated(self, identity_provider):
        def down(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with httpx.AsyncClient(transport=httpx.MockTransport(down)) as http:
            verifier = IdentityVerifier(http, JWKS_URL)
            with pytest.raises(UnauthenticatedError):
                await verifier.verify(identity_provider.token(identity_claims()))


class TestClaims:
    def test_parse_maps_public_metadata(self):
        claims = parse_claims(identity_claims("user_3"))

        assert claims.sub == "user_3"
        assert claims.first_name == "Asha"
        assert claims.public_metadata.gender == Gender.FEMALE
        assert str(claims.public_metadata.date_of_birth) == "1994-03-12"
        assert claims.public_metadata.referred_by is None

    def test_missing_metadata_defaults_to_empty(self):
        claims = parse_claims(identity_claims(public_metadata=None))
        assert claims.public_metadata.gender is None

    @pytest.mark.parametrize("field", ["firstName", "phoneNumber", "userType"])
    def test_missing_required_field_is_invalid_input(self, field):
        raw = identity_claims()
        del raw[field]
        with pytest.raises(InvalidInputError):
            parse_claims(raw)

    def test_blank_required_field_is_invalid_input(self):
        with pytest.raises(InvalidInputError):
            parse_claims(identity_claims(lastName="   "))

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("abc", "abc"),
            ("Bearer abc", "abc"),
            ("bearer   abc ", "abc"),
            ("  abc  ", "abc"),
        ],
    )
    def test_strip_bearer(self, raw, expected):
        assert strip_bearer(raw) == expected


class TestRefreshThrottle:
    @pytest.mark.asyncio
    async def test_forged_key_ids_do_not_refetch_within_interval(self, identity_provider):
        now = [1000.0]
        stranger = IdentityProvider()
        for kid in ("forged-1", "forged-2", "forged-3"):
            stranger.add_key(kid)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(identity_provider.jwks_handler)
        ) as http:
            verifier = identity_provider.verifier(
                http, min_refresh_interval=60.0, clock=lambda: now[0]
            )
            await verifier.verify(identity_provider.token(identity_claims()))
            assert identity_provider.jwks_requests == 1

            for kid in ("forged-1", "forged-2", "forged-3"):
                now[0] += 1.0
                with pytest.raises(UnauthenticatedError):
                    await verifier.verify(stranger.token(identity_claims(), kid=kid))

            assert identity_provider.jwks_requests == 1

    @pytest.mark.asyncio
    async def test_rotated_key_is_picked_up_after_interval(self, identity_provider):
        now = [1000.0]
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(identity_provider.jwks_handler)
        ) as http:
            verifier = identity_provider.verifier(
                http, min_refresh_interval=60.0, clock=lambda: now[0]
            )
            await verifier.verify(identity_provider.token(identity_claims()))

            identity_provider.add_key("key-2")
            rotated = identity_provider.token(identity_claims("user_2"), kid="key-2")
            with pytest.raises(UnauthenticatedError):
                await verifier.verify(rotated)

            now[0] += 61.0
            claims = await verifier.verify(rotated)

        assert claims["sub"] == "user_2"
        assert identity_provider.jwks_requests == 2
