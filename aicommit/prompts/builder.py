"""Prompt Builder - Render the user message for commit message generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from aicommit import COMMIT_TYPES

if TYPE_CHECKING:
    from aicommit.llm.base import GenerationRequest

DEFAULT_SYSTEM_PROMPT = """You are a senior software engineer who writes precise, informative git commit messages.

Your expertise:
- Deep understanding of the conventional commit format (type, scope, subject, body)
- Identifying the PRIMARY purpose of a change from a diff
- Writing for future developers who will read git log while debugging production

Your standards:
- Every word earns its place; no filler
- The diff shows WHAT; you explain WHY
- Specific verbs over vague ones (never "update", "change", "modify")
- A body only when it adds context the subject line can't capture"""

CHANGE_CODES = {
    "added": "A",
    "modified": "M",
    "deleted": "D",
    "renamed": "R",
}

MAX_SUBJECT_LENGTH = 72


class PromptBuilder:
    """Constructs the user prompt from a generation request."""

    def build(self, request: GenerationRequest) -> str:
        sections = [
            self._build_format_section(request),
            self._build_changes_section(request),
            self._build_context_section(request),
            self._build_final_instructions(request),
        ]
        return "\n\n".join(filter(None, sections))

    def _build_format_section(self, request: GenerationRequest) -> str:
        if request.conventional_commits:
            types_list = "\n".join(f"  - {t}: {desc}" for t, desc in COMMIT_TYPES.items())
            return f"""<format>
Write the commit message in this exact format:

type(scope): subject line (lowercase, imperative mood, max {MAX_SUBJECT_LENGTH} chars)

- optional bullet points explaining WHY, only when the subject is not enough

Choose the most appropriate type:
{types_list}

Scope is ONE word naming the module or component (auth, api, cli), never a file path.
Mark breaking changes with "!" before the colon, e.g. feat(api)!: drop v1 endpoints
</format>"""

        return f"""<format>
Write a plain subject line (imperative mood, max {MAX_SUBJECT_LENGTH} chars) without type prefixes,
optionally followed by a blank line and short bullet points explaining WHY.
</format>"""

    def _build_changes_section(self, request: GenerationRequest) -> str:
        diff = request.diff
        parts = ["<changes>", f"STAGED FILES: {len(diff.entries)}"]
        for entry in diff.entries:
            parts.append(f"  {CHANGE_CODES.get(entry.change_kind.value, '?')} {entry.label}")
        if diff.filtered_files:
            parts.append(f"  ({diff.filtered_files} lock/generated files omitted from the diff)")

        if diff.content:
            parts.extend(["", f"DIFF (git diff --staged, {diff.context_lines} context lines):", diff.content])

        if diff.truncated:
            parts.append("\n[Note: Diff was truncated due to size. Use the file list above for scope.]")

        parts.append("</changes>")
        return "\n".join(parts)

    def _build_context_section(self, request: GenerationRequest) -> str:
        if not request.operator_context:
            return ""

        return f"""<context>
The developer provided this context about the changes:
"{request.operator_context}"

Use this to inform your message, but verify it matches what you see in the diff.
</context>"""

    def _build_final_instructions(self, request: GenerationRequest) -> str:
        first_line = "type(scope): subject" if request.conventional_commits else "subject"
        return f"""<instructions>
Generate exactly ONE commit message.

Rules:
- Start directly with the {first_line} line
- No markdown formatting (no ```, no bold)
- No preamble like "Here's a commit message:"
- No explanation after the message
- Just the raw commit message, ready to use
</instructions>"""
