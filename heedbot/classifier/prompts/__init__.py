"""Classifier prompt templates (package data)."""

from .loader import PromptLoader

__all__ = ["PromptLoader"]
