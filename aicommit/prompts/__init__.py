"""Prompt Construction Package"""

from aicommit.prompts.builder import DEFAULT_SYSTEM_PROMPT, PromptBuilder

__all__ = ["DEFAULT_SYSTEM_PROMPT", "PromptBuilder"]
