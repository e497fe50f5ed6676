from dataclasses import dataclass

from masqani.core.settings import settings
from masqani.models.enums import UnitType


@dataclass(frozen=True)
class FeeTable:
    standard: int
    airbnb: int
    business: int


def fee(unit_type: UnitType, table: FeeTable) -> int:
    if unit_type == UnitType.AIRBNB:
        return table.airbnb
    if unit_type == UnitType.BUSINESS_HOUSE:
        return table.business
    return table.standard


def unlock_fee_table() -> FeeTable:
    return FeeTable(
        standard=settings.UNLOCK_FEE_STANDARD,
        airbnb=settings.UNLOCK_FEE_AIRBNB,
        business=settings.UNLOCK_FEE_BUSINESS,
    )


def listing_fee_table() -> FeeTable:
    return FeeTable(
        standard=settings.LISTING_FEE_STANDARD,
        airbnb=settings.LISTING_FEE_AIRBNB_MONTHLY,
        business=settings.LISTING_FEE_BUSINESS,
    )
