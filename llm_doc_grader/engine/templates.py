import os
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

DEFAULT_PROMPTS_DIR: str = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "prompts"))

INITIAL = "initial.jinja"
INITIAL_QUICK = "initial_quick.jinja"
PUSHBACK = "pushback.jinja"
PUSHBACK_QUICK = "pushback_quick.jinja"
VALIDATION = "validation.jinja"
FINAL_CHECK = "final_check.jinja"
COMPARISON = "comparison.jinja"
REWRITE = "rewrite.jinja"
REWRITE_REASONING = "rewrite_reasoning.jinja"


class PromptLibrary:
    """Renders the protocol prompts from Jinja templates on disk."""

    def __init__(self, prompts_dir: Optional[str] = None) -> None:
        self.prompts_dir = prompts_dir or DEFAULT_PROMPTS_DIR
        if not os.path.isdir(self.prompts_dir):
            raise FileNotFoundError(f"Prompt template directory not found: {self.prompts_dir}")
        self.env = Environment(
            loader=FileSystemLoader(self.prompts_dir),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )

    def render(self, template_name: str, **context: Any) -> str:
        return self.env.get_template(template_name).render(**context).strip()
