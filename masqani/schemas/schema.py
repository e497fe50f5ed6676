from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    field_validator,
)

from masqani.models.enums import (
    PricePeriod,
    TransactionKind,
    TransactionState,
    UnitType,
    UserRole,
)


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=2000)

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, value: str):
        return value.strip() if isinstance(value, str) else value


class Review(ReviewCreate):
    id: str
    user_id: str
    user_name: str
    date: datetime


class ListingDraft(BaseModel):
    draft_id: Optional[str] = None
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    unit_type: UnitType
    price: Decimal = Field(..., ge=0)
    deposit: Optional[Decimal] = Field(default=None, ge=0)
    price_period: PricePeriod = PricePeriod.MONTHLY
    location_name: str = Field(..., min_length=2)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_from_town: Optional[float] = None
    photos: List[str] = Field(default_factory=list)
    is_vacant: bool = True
    has_parking: bool = False
    is_pets_friendly: bool = False

    @field_validator("title", "location_name", mode="before")
    @classmethod
    def strip_text(cls, value: str):
        return value.strip() if isinstance(value, str) else value


class ListingPublicOut(BaseModel):
    """What any viewer may see before the listing is unlocked."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    landlord_id: str
    display_title: str
    description: Optional[str] = None
    unit_type: UnitType
    price: Decimal
    deposit: Decimal
    price_period: PricePeriod
    location_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_from_town: Optional[float] = None
    photos: List[str]
    is_vacant: bool
    is_verified: bool
    has_parking: bool
    is_pets_friendly: bool
    reviews: List[Review]
    date_listed: datetime
    subscription_expiry: Optional[datetime] = None


class ListingOut(ListingPublicOut):
    title: str
    landlord_name: Optional[str] = None
    landlord_phone: Optional[str] = None
    landlord_email: Optional[str] = None


class ListingView(BaseModel):
    can_see_contact: bool
    listing: Union[ListingOut, ListingPublicOut]


class ListingFeed(BaseModel):
    offline: bool = False
    items: List[ListingView]


class AccountBase(BaseModel):
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    favorites: List[str] = Field(default_factory=list)
    saved_searches: List[Any] = Field(default_factory=list)
    is_encrypted: bool = True

    @property
    def doc_key(self) -> str:
        return self.email or self.id


class TenantAccount(AccountBase):
    role: Literal[UserRole.TENANT] = UserRole.TENANT
    unlocked_listings: List[str] = Field(default_factory=list)

    def has_unlocked(self, listing_id: str) -> bool:
        return listing_id in self.unlocked_listings


class LandlordAccount(AccountBase):
    role: Literal[UserRole.LANDLORD] = UserRole.LANDLORD

    def owns(self, listing) -> bool:
        return listing.landlord_id in {self.id, self.email}


Account = Annotated[Union[TenantAccount, LandlordAccount], Field(discriminator="role")]
account_adapter: TypeAdapter[Account] = TypeAdapter(Account)


class ProfileSaveSchema(BaseModel):
    id: str
    role: UserRole
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    favorites: Optional[List[str]] = None
    saved_searches: Optional[List[Any]] = None
    is_encrypted: Optional[bool] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value


class UnlockRequest(BaseModel):
    listing_id: str


class PhoneSubmit(BaseModel):
    phone_number: str


class PhotoUploadRequest(BaseModel):
    listing_key: str = Field(..., min_length=1, max_length=64)
    index: int = Field(..., ge=0)
    payload: str = Field(..., min_length=1)


class PhotoUploadOut(BaseModel):
    url: str


class VacancyUpdate(BaseModel):
    is_vacant: bool


class TransactionOut(BaseModel):
    id: str
    kind: TransactionKind
    state: TransactionState
    subject_id: str
    fee_amount: int
    phone_number: Optional[str] = None
    attempts: int
    error: Optional[str] = None
    error_code: Optional[str] = None
    result: Optional[Any] = None


class PhotoBatchRequest(BaseModel):
    listing_key: str = Field(..., min_length=1, max_length=64)
    photos: List[str]


class PhotoBatchOut(BaseModel):
    photos: List[str]
    failed: List[int]

    @property
    def complete(self) -> bool:
        return not self.failed
