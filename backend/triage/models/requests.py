"""Request bodies for the inbox HTTP API."""

from pydantic import BaseModel

from triage.models.conversations import ConversationFilter, Direction


class FilterRequest(BaseModel):
    filter: ConversationFilter


class SelectRequest(BaseModel):
    chat_id: str | None = None


class MoveRequest(BaseModel):
    direction: Direction


class DraftRequest(BaseModel):
    text: str = ""


class KeyRequest(BaseModel):
    """A key press forwarded from the client."""

    key: str
    input_focused: bool = False
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    shift: bool = False
