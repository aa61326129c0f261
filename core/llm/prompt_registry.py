#!/usr/bin/env python3
"""
Prompt Registry - versioned prompt templates.

The active version is passed in by the caller instead of living in a
module-level constant, so several versions can be used side by side.
Templates come from an in-code mapping and, optionally, from
``<prompts_dir>/<version>/<name>.txt`` files which take precedence.
"""
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

from core.exceptions import PromptNotFound
from core.llm.system_prompts import PROMPT_TEMPLATES

logger = logging.getLogger(__name__)


class PromptRegistry:
    """Look up and render prompt templates by (version, name)."""

    def __init__(
        self,
        templates: Optional[Mapping[str, Mapping[str, str]]] = None,
        prompts_dir: Optional[str] = None
    ):
        self.templates = templates if templates is not None else PROMPT_TEMPLATES
        self.prompts_dir = Path(prompts_dir) if prompts_dir else None

    def get(self, version: str, name: str) -> str:
        """Return the raw template text.

        Raises:
            PromptNotFound: If neither a file nor an in-code template exists
        """
        if self.prompts_dir is not None:
            path = self.prompts_dir / version / f"{name}.txt"
            if path.is_file():
                return path.read_text(encoding="utf-8")

        template = self.templates.get(version, {}).get(name)
        if template is None:
            raise PromptNotFound(f"Prompt not found: {version}/{name}")
        return template

    def has(self, version: str, name: str) -> bool:
        try:
            self.get(version, name)
        except PromptNotFound:
            return False
        return True

    @staticmethod
    def render(template: str, values: Dict[str, str]) -> str:
        """Substitute {placeholder} markers; unknown placeholders are left as-is."""
        prompt = template
        for key, value in values.items():
            prompt = prompt.replace("{" + key + "}", value)
        return prompt
