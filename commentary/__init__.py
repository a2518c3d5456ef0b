"""
AI commentary on the selected instrument, fetched from an external LLM.
"""

from .fetcher import CommentaryChannel, CommentaryFetcher
from .prompts import build_commentary_prompt

__all__ = ["CommentaryChannel", "CommentaryFetcher", "build_commentary_prompt"]
