"""Rider onboarding and profile maintenance."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.enums import UserType
from ridehail.domain.exceptions import ConflictError, NotFoundError
from ridehail.infrastructure.identity import IdentityClaims
from ridehail.infrastructure.models import RiderModel
from ridehail.infrastructure.repositories import RiderRepository

logger = logging.getLogger(__name__)


class RiderService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.riders = RiderRepository(session)

    async def create_from_claims(
        self, claims: IdentityClaims, profile_image: Optional[bytes] = None
    ) -> RiderModel:
        if await self.riders.get_by_external_id(claims.sub):
            raise ConflictError("User already exists with this external id")

        meta = claims.public_metadata
        rider = RiderModel(
            external_id=claims.sub,
            email=claims.email,
            phone_number=claims.phone_number,
            first_name=claims.first_name,
            last_name=claims.last_name,
            user_type=claims.user_type.lower() or UserType.RIDER.value,
            profile_image=profile_image or None,
            date_of_birth=meta.date_of_birth,
            gender=meta.gender,
            emergency_contact_name=meta.emergency_contact_name,
            emergency_contact_number=meta.emergency_contact_number,
            referral_code=meta.referral_code,
            referred_by=meta.referred_by,
        )
        try:
            await self.riders.create(rider)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("User conflicts with an existing record") from exc

        logger.info("Rider %s registered (id=%s)", rider.external_id, rider.id)
        return rider

    async def get_by_external_id(self, external_id: str) -> RiderModel:
        rider = await self.riders.get_by_external_id(external_id)
        if rider is None:
            raise NotFoundError("User not found")
        return rider

    async def update_profile(
        self,
        external_id: str,
        *,
        emergency_contact_name: Optional[str] = None,
        emergency_contact_number: Optional[str] = None,
        date_of_birth: Optional[date] = None,
        profile_image: Optional[bytes] = None,
    ) -> RiderModel:
        """Overwrite only the fields that were supplied."""
        rider = await self.get_by_external_id(external_id)
        if emergency_contact_name is not None:
            rider.emergency_contact_name = emergency_contact_name
        if emergency_contact_number is not None:
            rider.emergency_contact_number = emergency_contact_number
        if date_of_birth is not None:
            rider.date_of_birth = date_of_birth
        if profile_image:
            rider.profile_image = profile_image
        await self.session.commit()
        return rider
