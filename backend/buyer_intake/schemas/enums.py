"""Fixed vocabularies for buyer records."""

from enum import Enum
from typing import List, Type


class City(str, Enum):
    CHANDIGARH = "Chandigarh"
    MOHALI = "Mohali"
    ZIRAKPUR = "Zirakpur"
    PANCHKULA = "Panchkula"
    OTHER = "Other"


class PropertyType(str, Enum):
    APARTMENT = "Apartment"
    VILLA = "Villa"
    PLOT = "Plot"
    OFFICE = "Office"
    RETAIL = "Retail"


class BHK(str, Enum):
    STUDIO = "Studio"
    ONE = "One"
    TWO = "Two"
    THREE = "Three"
    FOUR = "Four"


class Purpose(str, Enum):
    BUY = "Buy"
    RENT = "Rent"


class Timeline(str, Enum):
    ZERO_TO_THREE = "ZeroToThree"
    THREE_TO_SIX = "ThreeToSix"
    MORE_THAN_SIX = "MoreThanSix"
    EXPLORING = "Exploring"


class Source(str, Enum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    WALK_IN = "WalkIn"
    CALL = "Call"
    OTHER = "Other"


class BuyerStatus(str, Enum):
    NEW = "New"
    QUALIFIED = "Qualified"
    CONTACTED = "Contacted"
    VISITED = "Visited"
    NEGOTIATION = "Negotiation"
    CONVERTED = "Converted"
    DROPPED = "Dropped"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


# BHK only applies to these property types
RESIDENTIAL_TYPES = frozenset({PropertyType.APARTMENT.value, PropertyType.VILLA.value})


def enum_values(enum_cls: Type[Enum]) -> List[str]:
    return [member.value for member in enum_cls]
