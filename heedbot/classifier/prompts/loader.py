"""PromptLoader — load classifier prompt templates from .txt files.

Prompts ship as package data next to this module so wording changes are
reviewed as text, not as Python string literals. The texts are used
verbatim: the fenced-JSON instruction carries literal braces, so there is
no template substitution.

Usage::

    loader = PromptLoader()
    system = loader.load("classify_fenced_json")
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger


class PromptLoader:
    """Load prompt texts from heedbot/classifier/prompts/*.txt.

    Texts are cached in memory; ``version`` comes from manifest.json.
    """

    def __init__(self, prompts_dir: Path | None = None) -> None:
        self._dir = prompts_dir or Path(__file__).parent
        self._cache: dict[str, str] = {}
        self._manifest: dict | None = None

    def load(self, prompt_name: str) -> str:
        """Load a prompt text.

        Raises:
            FileNotFoundError: If the prompt file doesn't exist.
        """
        if prompt_name in self._cache:
            return self._cache[prompt_name]

        path = self._dir / f"{prompt_name}.txt"
        if not path.exists():
            raise FileNotFoundError(f"Prompt '{prompt_name}' not found at {path}")

        # Trailing newline from the file is not part of the prompt
        text = path.read_text(encoding="utf-8").rstrip("\n")
        self._cache[prompt_name] = text
        return text

    @property
    def manifest(self) -> dict:
        """Load and cache manifest.json (empty dict when missing or unreadable)."""
        if self._manifest is not None:
            return self._manifest

        manifest_path = self._dir / "manifest.json"
        self._manifest = {}
        if manifest_path.exists():
            try:
                self._manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"PromptLoader: unreadable manifest at {manifest_path}: {e}")
        return self._manifest

    @property
    def version(self) -> str:
        return str(self.manifest.get("version", "unknown"))
