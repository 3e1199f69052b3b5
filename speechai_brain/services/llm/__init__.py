"""
Chat completion backends.
"""

from .openai import OpenAIChatLLM

__all__ = ["OpenAIChatLLM"]
