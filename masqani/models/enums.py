from enum import Enum


class UserRole(str, Enum):
    TENANT = "TENANT"
    LANDLORD = "LANDLORD"


class UnitType(str, Enum):
    BEDSITTER = "Bedsitter"
    ONE_BEDROOM = "1 Bedroom"
    TWO_BEDROOM = "2 Bedroom"
    THREE_BEDROOM = "3 Bedroom"
    FOUR_BEDROOM = "4 Bedroom"
    OWN_COMPOUND = "Own Compound"
    AIRBNB = "Airbnb"
    BUSINESS_HOUSE = "Nyumba ya Biashara"


class PricePeriod(str, Enum):
    MONTHLY = "monthly"
    NIGHTLY = "nightly"


class TransactionKind(str, Enum):
    UNLOCK = "unlock"
    ACTIVATION = "activation"


class TransactionState(str, Enum):
    AWAITING_PAYMENT_INPUT = "AwaitingPaymentInput"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ABANDONED = "Abandoned"


class ProfilePartition(str, Enum):
    LANDLORD = "landlord"
    TENANT = "tenant"
    LEGACY = "legacy"
