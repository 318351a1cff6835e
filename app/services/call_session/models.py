"""Call session models."""
from datetime import datetime
from enum import Enum
from typing import List, Tuple
from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        """Return the string value of the role."""
        return self.value


class CallState(str, Enum):
    """Where a call is in the conversation loop."""

    NEW = "new"  # First webhook for the call
    AWAITING_INPUT = "awaiting_input"  # Twilio is capturing the caller
    PROCESSING = "processing"  # Resolving input and asking the model
    RESPONDING = "responding"  # Rendering the assistant reply
    ENDED = "ended"  # Twilio reported a terminal call status

    def __str__(self) -> str:
        """Return the string value of the state."""
        return self.value


class Turn(BaseModel):
    """One utterance in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def to_message(self) -> dict:
        """Format as a chat completion message."""
        return {"role": self.role.value, "content": self.content}


class CallSession:
    """Conversation state for one phone call."""

    def __init__(self, call_sid: str, transcript: List[Turn]):
        self.call_sid = call_sid
        self.created_at = datetime.utcnow()
        self.state = CallState.NEW
        self._transcript = list(transcript)

    @property
    def transcript(self) -> Tuple[Turn, ...]:
        """Read-only view of the transcript."""
        return tuple(self._transcript)

    def append(self, turn: Turn) -> None:
        """Append a turn to the transcript."""
        self._transcript.append(turn)
