"""LLM conversation engine."""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from openai import APIStatusError, AsyncOpenAI, OpenAIError

from app.core.config import settings
from app.core.exceptions import UpstreamEmpty, UpstreamError
from app.services.call_session.models import Role, Turn

logger = logging.getLogger(__name__)

TEMPERATURE = 0


@dataclass(frozen=True)
class ConversationReply:
    """Assistant reply and the transcript it extends."""

    text: str
    transcript: Tuple[Turn, ...]


class ConversationEngine:
    """Produces the next assistant utterance from the full transcript."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.chat_model

    async def respond(
        self, transcript: Sequence[Turn], user_utterance: str
    ) -> ConversationReply:
        """
        Generate the assistant reply to a caller utterance.

        The chat API is stateless, so the whole history is sent every time.
        The given transcript is not modified.

        Args:
            transcript: Conversation so far, starting with the system prompt
            user_utterance: What the caller just said

        Returns:
            Reply text and the transcript with the user and assistant turns appended

        Raises:
            UpstreamEmpty: The model returned no content
            UpstreamError: The request failed
        """
        working = list(transcript)
        working.append(Turn(role=Role.USER, content=user_utterance))

        logger.info(
            f"[CONVERSATION] Requesting completion - Model: {self.model}, "
            f"Turns: {len(working)}, User input: '{user_utterance[:200]}'"
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[turn.to_message() for turn in working],
                temperature=TEMPERATURE,
            )
        except APIStatusError as e:
            raise UpstreamError(
                f"Chat completion failed: {str(e)}", status_code=e.status_code
            ) from e
        except OpenAIError as e:
            raise UpstreamError(f"Chat completion failed: {str(e)}") from e

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content or not content.strip():
            raise UpstreamEmpty("Chat completion returned no content")

        text = content.strip()
        logger.info(f"[CONVERSATION] Assistant reply: '{text[:200]}'")

        working.append(Turn(role=Role.ASSISTANT, content=text))
        return ConversationReply(text=text, transcript=tuple(working))
