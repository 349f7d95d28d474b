"""Stage 6: Tokens."""

from .stage import TokensStage, TokensResult

__all__ = ["TokensStage", "TokensResult"]
