from pydantic import BaseModel, Field

from chatfold.message import Message


class ChatSession(BaseModel):
    thread_id: str | None = None
    messages: list[Message] = Field(default_factory=list)
    is_streaming: bool = False
    error: str | None = None
