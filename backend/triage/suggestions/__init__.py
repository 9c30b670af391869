"""Reply suggestions - transcript assembly, Gemini call and session cache."""

from .assembler import SuggestionAssembler
from .cache import SuggestionCache
from .model import ReplyModel

__all__ = ["ReplyModel", "SuggestionAssembler", "SuggestionCache"]
