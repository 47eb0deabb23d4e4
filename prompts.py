"""
prompts.py — Prompt text for every generation request.

Leaf prompts carry raw file content; directory prompts only ever see the
already-produced child summaries, never source.
"""

from __future__ import annotations


NO_CHANGE = "NO_CHANGE"

SYSTEM_PROMPT = """You are a senior engineer writing project documentation from source code.
Be concise, specific and accurate. Respond in Markdown. Never invent behavior
that the material you are given does not show."""


def leaf_prompt(*, relative_path: str, content: str, max_chars: int = 12000) -> str:
    if len(content) > max_chars:
        content = content[:max_chars] + "\n... [truncated for brevity]"
    return f"""Describe this file for project documentation: its purpose, the main
functionality it provides, notable APIs or configuration options, and how it
fits into the rest of the project. Keep it to one short paragraph.

File: {relative_path}

```
{content}
```"""


def directory_prompt(*, name: str, child_summaries: list[str]) -> str:
    children = "\n\n".join(child_summaries)
    return f"""Below are descriptions of the entries inside the `{name}` directory.
Write one paragraph describing this directory's role in the project: what it
provides, how its parts relate, and anything a reader of the documentation
must know. Do not list every entry.

Entries:
{children}"""


def line_correction_prompt(
    *,
    document_name: str,
    line_number: int,
    line_text: str,
    code_summaries: list[str],
    project_summary: str,
) -> str:
    summaries = "\n".join(code_summaries)
    return f"""The following line in {document_name} may be outdated:

Line {line_number}: "{line_text}"

Current code summaries:
{summaries}

Project context:
{project_summary}

If this line needs updating based on the current code, reply with the
corrected line only. If the line is still accurate, reply with exactly
{NO_CHANGE}. Output nothing else."""


def create_document_prompt(*, project_name: str, project_summary: str) -> str:
    return f"""Create a README.md for a project called '{project_name}'.
Focus on what the project does for its users and how to use it. Include
installation, configuration, usage examples and troubleshooting sections
where the project information supports them.

Project information:
{project_summary}

Output the complete README in Markdown and nothing else."""


def merge_document_prompt(*, existing: str, project_summary: str) -> str:
    return f"""Update the existing README below so it matches the current project
analysis. Keep accurate hand-written sections (installation, examples,
troubleshooting) and rewrite descriptions, architecture and feature sections
that no longer match the code. Remove sections that are no longer relevant.

Existing README:
---
{existing}
---

Current project analysis:
---
{project_summary}
---

Output the complete updated README in Markdown and nothing else."""


CONNECTION_TEST_PROMPT = "Respond with exactly: Connection test successful"
