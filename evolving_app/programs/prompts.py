"""
Prompt builders for the program generation passes.
"""

from __future__ import annotations

from typing import Sequence


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def build_specification_prompt(ideas: Sequence[str]) -> str:
    """Ask for one coherent app specification synthesized from user ideas."""
    return f"""You are a product designer. Several people each proposed an idea for a
small, playful web application. Combine them into ONE coherent specification
for a single-page app that can be built as a self-contained HTML file.

IDEAS:
{_bullets(ideas)}

Describe the core concept, the main screen, the controls and the rules of the
app in under 300 words. Do not write any code."""


def build_initial_program_prompt(specification: str) -> str:
    """Ask for the first runnable version of the app."""
    return f"""You are an expert front-end developer. Build the application described
below as a single self-contained HTML document with inline CSS and JavaScript.
Do not load external scripts, fonts or images.

SPECIFICATION:
{specification}

Return the complete document inside one ```html fenced code block."""


def build_feature_summary_prompt(requests: Sequence[str], limit: int) -> str:
    """Ask for a short prioritized list of changes from raw user requests."""
    return f"""People using a small web app asked for the following changes:

{_bullets(requests)}

Merge duplicates, drop anything unsafe or impossible in a single HTML page, and
return at most {limit} concrete features as a numbered list ordered by how many
people would benefit. One line per feature, no commentary."""


def build_update_prompt(current_code: str, feature_summary: str) -> str:
    """Ask for the next version of the app with the prioritized features."""
    return f"""You are an expert front-end developer maintaining a single-file web app.

CURRENT CODE:
```html
{current_code}
```

FEATURES TO ADD (highest priority first):
{feature_summary}

Implement as many of the features as you can without breaking existing
behaviour. Keep the app self-contained. Return the complete updated document
inside one ```html fenced code block."""
