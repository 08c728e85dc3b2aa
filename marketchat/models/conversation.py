from datetime import datetime
from typing import Dict, List, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    initiator_id: str
    counterpart_id: str
    # both ids sorted; lets one query match either ordering of the pair
    participants: List[str]
    # "<min>:<max>", unique together with product_id
    pair_key: str
    product_id: Optional[str]
    subject: str
    created_at: datetime
    last_message_at: datetime
    # per-participant unread counters (participant_id -> count)
    unread_counters: Dict[str, int]
