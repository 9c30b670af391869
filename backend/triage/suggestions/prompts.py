"""Prompt templates for reply suggestions."""

# Em dash; the model is told to avoid it and any that slip through are replaced.
EXCLUDED_PUNCTUATION = "—"
PUNCTUATION_SUBSTITUTE = " - "

REPLY_PROMPT_TEMPLATE = """Based on this conversation history with timestamps, suggest a natural and appropriate response. Pay special attention to the timing of messages - more recent messages should heavily influence your response. Consider the conversation flow and respond appropriately to the most recent context.

The conversation shows when each message was sent relative to now. Recent messages (within hours) are much more relevant than older ones.

Conversation history (most recent at bottom):
{transcript}

---END OF CONVERSATION HISTORY---

Provide a suggested response that:
1. Responds to the most recent message context
2. Matches the conversation tone and style
3. Is natural and conversational. Do not use emdash i.e. {excluded}
4. Only provide the message text, nothing else

Suggested response:"""


def build_reply_prompt(transcript: str) -> str:
    """Embed an annotated transcript in the reply-suggestion prompt.

    Args:
        transcript: Lines of ``[{bucket}] {sender}: {text}``, oldest first.
    """
    return REPLY_PROMPT_TEMPLATE.format(
        transcript=transcript,
        excluded=EXCLUDED_PUNCTUATION,
    )


def clean_reply(text: str) -> str:
    """Trim the model output and replace the excluded punctuation mark."""
    return text.strip().replace(EXCLUDED_PUNCTUATION, PUNCTUATION_SUBSTITUTE)
