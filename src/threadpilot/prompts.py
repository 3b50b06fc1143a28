"""Summary: Prompt text for issue extraction.

Importance: Keeps the instruction sent to the model in one reviewable place.
Alternatives: Store prompts only in external files.
"""

from __future__ import annotations

from pathlib import Path


DEFAULT_EXTRACTION_PROMPT = """You are given a Slack thread where someone reported an issue. Your job is to extract only the core information about the problem and format it for a Basecamp to-do.

Rules:
- Ignore off-topic chatter, thanks, "following", "+1", and social filler.
- Output exactly two sections in plain text, no markdown headers:
  1. TITLE: A single short line (under ~80 chars) summarizing the issue for the to-do title.
  2. DESCRIPTION: Must follow this structure exactly. Use the display name of the person who posted the original (first) message for "Reported by ... in Slack". The word "Slack" will be turned into a link by the system; do not add a URL yourself.

DESCRIPTION structure (copy this structure and fill in; skip optional sections if information is insufficient):

Reported by [display name of person who reported] in Slack

[Main issue description - mandatory. One or more brief, clear paragraphs describing the issue.]

Steps:
1) [step one]
2) [step two]
...
[Optional: numbered list of steps to reproduce. Include only if clear from the thread; otherwise omit the entire Steps section.]

Expected result: [Optional: brief description of expected result. Omit if unavailable.]

Actual result: [Optional: brief description of actual result. Omit if unavailable.]

Important comments:
- [Optional: bullet list of important clues, follow-ups, or context from the thread. Omit section if none.]"""


def load_extraction_prompt(path: str | None) -> str:
    """Return the prompt from ``path`` when it exists, else the built-in prompt."""

    if path:
        prompt_path = Path(path)
        if not prompt_path.is_absolute():
            prompt_path = Path.cwd() / prompt_path
        if prompt_path.exists():
            return prompt_path.read_text(encoding="utf-8").strip()
    return DEFAULT_EXTRACTION_PROMPT
