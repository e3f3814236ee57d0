"""Prompt construction for the architect and developer roles.

Pure template rendering: no I/O, no network, deterministic given inputs.

Both roles are told to answer with exactly one fenced ```json block; that
wording and ``ai_builder.extractor`` form one contract and change together.
"""

from __future__ import annotations

import textwrap

from ai_builder.analyzer import ProjectAnalysis
from ai_builder.models import Task, TaskAction

_OUTPUT_RULE = (
    "Respond with exactly one fenced ```json code block and nothing else: "
    "no explanations before or after it."
)

_FILES_FORMAT = textwrap.dedent("""\
    ```json
    {
      "files": [
        {"path": "relative/path/from/src.tsx", "content": "complete file content with all imports"}
      ],
      "description": "Short, friendly description of what was generated"
    }
    ```""")

_PLAN_FORMAT = textwrap.dedent("""\
    ```json
    {
      "plan": [
        {"path": "components/Example.tsx", "action": "create", "instruction": "What this file must contain"},
        {"path": "App.jsx", "action": "modify", "instruction": "What to change in this existing file"}
      ],
      "description": "Short summary of the whole change"
    }
    ```""")

_GENERATION_RULES = textwrap.dedent("""\
    1. Use TypeScript with React whenever possible
    2. Use Tailwind CSS utility classes for styling
    3. Follow the patterns already established in the project
    4. Use functional components with hooks
    5. Include every import the file needs
    6. Code must be complete, working and ready to use
    7. Use descriptive names and modern conventions
    8. Design mobile-first and responsive
    9. Never truncate or omit code; never leave placeholders""")

ARCHITECT_SYSTEM_CONTEXT = textwrap.dedent("""\
    You are a senior software architect for a React + Tailwind CSS project.
    You split a feature request into an ordered list of file-level tasks.
    Each task creates or modifies exactly one file; paths are relative to src/.
    Order tasks so that files other files depend on come first.
    You never write the code yourself; developers implement each task later.""")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _format_paths(paths: list[str]) -> str:
    return ", ".join(paths) if paths else "none"


def _format_context(context: str) -> str:
    context = context.strip()
    return f"ADDITIONAL CONTEXT:\n{context}\n\n" if context else ""


# ---------------------------------------------------------------------------
# System contexts
# ---------------------------------------------------------------------------

def build_developer_system_context(analysis: ProjectAnalysis) -> str:
    """System context for execution calls, enriched with the project analysis."""
    return (
        "You are an assistant specialised in generating high-quality React/TypeScript code.\n\n"
        f"CURRENT PROJECT ANALYSIS:\n{analysis.summary}\n\n"
        f"GENERATION RULES:\n{_GENERATION_RULES}\n\n"
        f"AVAILABLE TECHNOLOGIES:\n{', '.join(analysis.technologies)}\n\n"
        f"RESPONSE FORMAT:\n{_OUTPUT_RULE}\n{_FILES_FORMAT}"
    )


# ---------------------------------------------------------------------------
# Planning (architect)
# ---------------------------------------------------------------------------

def build_planning_prompt(request: str, analysis: ProjectAnalysis, context: str = "") -> str:
    """Ask the architect for an ordered ``plan`` plus a ``description``."""
    return (
        f"{_format_context(context)}"
        f"PROJECT CONTEXT:\n{analysis.summary}\n\n"
        f"Existing components: {_format_paths(analysis.components)}\n"
        f"Existing pages: {_format_paths(analysis.pages)}\n"
        f"Existing services: {_format_paths(analysis.services)}\n\n"
        f"USER REQUEST:\n{request.strip()}\n\n"
        "Produce a plan. Use action \"modify\" only for files listed above; "
        "use \"create\" for new files.\n\n"
        f"RESPONSE FORMAT:\n{_OUTPUT_RULE}\n{_PLAN_FORMAT}"
    )


# ---------------------------------------------------------------------------
# Execution (developer)
# ---------------------------------------------------------------------------

def build_create_prompt(task: Task, analysis: ProjectAnalysis, context: str = "") -> str:
    """Instruction for a task that creates a new file."""
    return (
        f"{_format_context(context)}"
        f"Create the file `{task.path}`.\n\n"
        f"TASK:\n{task.instruction.strip()}\n\n"
        f"PROJECT SUMMARY:\n{analysis.summary}\n\n"
        f"AVAILABLE TECHNOLOGIES: {', '.join(analysis.technologies)}\n\n"
        f"Return the complete file in the \"files\" array using the path `{task.path}`.\n\n"
        f"RESPONSE FORMAT:\n{_OUTPUT_RULE}\n{_FILES_FORMAT}"
    )


def build_modify_prompt(task: Task, context: str = "") -> str:
    """Instruction for a task that rewrites an existing file.

    The complete original content is inlined so the model returns the whole
    updated file, not a diff.
    """
    return (
        f"{_format_context(context)}"
        f"Modify the existing file `{task.path}`.\n\n"
        f"TASK:\n{task.instruction.strip()}\n\n"
        f"CURRENT CONTENT OF `{task.path}`:\n"
        f"<<<FILE\n{task.original_content or ''}\nFILE>>>\n\n"
        "Keep everything that the task does not ask to change. Return the COMPLETE "
        f"updated file in the \"files\" array using the path `{task.path}`.\n\n"
        f"RESPONSE FORMAT:\n{_OUTPUT_RULE}\n{_FILES_FORMAT}"
    )


def build_execution_prompt(task: Task, analysis: ProjectAnalysis, context: str = "") -> str:
    """Dispatch on the task action."""
    if task.action is TaskAction.MODIFY:
        return build_modify_prompt(task, context)
    return build_create_prompt(task, analysis, context)
