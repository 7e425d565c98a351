from typing import List, Literal

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    """One turn of a conversation sent to a provider"""

    role: Literal["user", "assistant", "system"]
    content: str

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {"role": "user", "content": "What is the capital of France?"},
                {"role": "assistant", "content": "Paris."},
            ]
        },
    )

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


def to_wire_messages(messages: List[ChatMessage]) -> List[dict]:
    """Serialize messages into the {role, content} list both APIs accept."""
    return [msg.to_wire() for msg in messages]
