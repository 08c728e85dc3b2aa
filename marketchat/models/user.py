from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    business_name: Optional[str]
    store_logo: Optional[str]
    is_seller: bool


class ParticipantSummary(TypedDict, total=False):

    _id: str
    display_name: str
    first_name: Optional[str]
    last_name: Optional[str]
    business_name: Optional[str]
    store_logo: Optional[str]
    is_seller: bool
