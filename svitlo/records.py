"""
Durable record models and their KV accessors.

Every stored record is validated on load. A present but invalid field is
dropped so that it falls back to its default; a record that is not a JSON
object, or that lacks a required field, is treated as absent.
"""

import json
import logging
from typing import List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from svitlo.config import ALERT_MIN_BEFORE, STATE_TTL_SEC
from svitlo.storage import KVStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class City(BaseModel):
    name: str
    url: str


class Queue(BaseModel):
    name: str
    url: str


class SelectedQueue(BaseModel):
    url: str
    city_name: str = ""
    queue_name: str = ""


class UserState(BaseModel):
    """Per (token, chat) interactive state, loaded and saved around every update."""
    cities: List[City] = Field(default_factory=list)
    queues: List[Queue] = Field(default_factory=list)
    city: Optional[City] = None
    selected: Optional[SelectedQueue] = None
    saved: List[SelectedQueue] = Field(default_factory=list)
    alerts_enabled: bool = True
    action_counter: int = 0
    ad_counter: int = 0


class Subscription(BaseModel):
    token: str
    chat_id: int
    url: str
    city_name: str = ""
    queue_name: str = ""
    minutes_before: int = Field(default=ALERT_MIN_BEFORE, gt=0)
    enabled: bool = True
    last_notified_event_utc_ms: int = 0
    updated_at: int = 0


class AdItem(BaseModel):
    id: str
    type: Literal["text", "photo", "video", "document"] = "text"
    text: str = ""
    file_id: str = ""
    created_at: int = 0
    expires_at: int = 0     # 0 = never


class AdConfig(BaseModel):
    enabled: bool = True
    frequency: int = Field(default=3, ge=1, le=50)
    items: List[AdItem] = Field(default_factory=list)


class Whitelist(BaseModel):
    chat_ids: List[int] = Field(default_factory=list)


def load_record(model: Type[ModelT], raw) -> Optional[ModelT]:
    """
    Validates raw data (dict or JSON text) against model with field-by-field defaulting.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None

    data = dict(raw)
    while True:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            errors = e.errors()
            # Top-level required field absent; nested misses only reset their field
            if any(err["type"] == "missing" and len(err["loc"]) == 1 for err in errors):
                return None
            invalid = {err["loc"][0] for err in errors if err["loc"]} & set(data)
            if not invalid:
                return None
            for name in invalid:
                data.pop(name)
            # A dropped required field turns into "missing" on the next pass


def dump_record(record: BaseModel) -> str:
    return record.model_dump_json()


# --- User state ---

def state_key(token: str, chat_id) -> str:
    return f"st:{token}:{chat_id}"


async def load_state(store: KVStore, token: str, chat_id) -> UserState:
    raw = await store.get(state_key(token, chat_id))
    if raw is None:
        return UserState()
    state = load_record(UserState, raw)
    if state is None:
        logger.warning(f"Discarding unreadable state for chat {chat_id}")
        return UserState()
    return state


async def save_state(store: KVStore, token: str, chat_id, state: UserState) -> None:
    await store.put(state_key(token, chat_id), dump_record(state), STATE_TTL_SEC)
