from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from masqani.core.get_db import Base

from .enums import PricePeriod, ProfilePartition, UnitType, UserRole
from .utils import new_id, utcnow


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    landlord_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit_type: Mapped[UnitType] = mapped_column(
        Enum(UnitType, native_enum=False), nullable=False, index=True
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2), nullable=False
    )
    deposit: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2), nullable=False, default=0
    )
    price_period: Mapped[PricePeriod] = mapped_column(
        Enum(PricePeriod, native_enum=False),
        nullable=False,
        default=PricePeriod.MONTHLY,
    )

    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    distance_from_town: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    reviews: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_vacant: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    has_parking: Mapped[bool] = mapped_column(Boolean, default=False)
    is_pets_friendly: Mapped[bool] = mapped_column(Boolean, default=False)

    landlord_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    landlord_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    landlord_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    date_listed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    subscription_expiry: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    @property
    def display_title(self) -> str:
        return f"{self.unit_type.value} in {self.location_name}"

    def __repr__(self):
        return f"<Listing {self.id} {self.unit_type.value} - {self.location_name}>"


class ProfileColumns:
    """Columns shared by every profile partition.

    ``doc_key`` is the email when the account has one, otherwise its id.
    """

    doc_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False), nullable=False
    )
    unlocked_listings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    favorites: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    saved_searches: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_encrypted: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.doc_key} {self.role.value}>"


class LandlordProfile(ProfileColumns, Base):
    __tablename__ = "landlord_profiles"
    partition = ProfilePartition.LANDLORD


class TenantProfile(ProfileColumns, Base):
    __tablename__ = "tenant_profiles"
    partition = ProfilePartition.TENANT


class LegacyProfile(ProfileColumns, Base):
    """Profiles written before accounts were split by role."""

    __tablename__ = "legacy_profiles"
    partition = ProfilePartition.LEGACY


PROFILE_LOOKUP_ORDER = (LandlordProfile, TenantProfile, LegacyProfile)

PROFILE_MODEL_BY_ROLE = {
    UserRole.LANDLORD: LandlordProfile,
    UserRole.TENANT: TenantProfile,
}
