from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.fastmcp.prompts.base import Message, UserMessage
from pydantic import BaseModel, Field

from mcp_sandbox.config import setup_logging

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


class PromptArgumentError(ValueError):
    pass


class MissingArgumentError(PromptArgumentError):
    pass


class InvalidEnumValueError(PromptArgumentError):
    pass


class PromptNotFoundError(ValueError):
    pass


class ProjectContext(BaseModel):
    name: str | None = None
    description: str | None = None
    tech_stack: list[str] = Field(default_factory=list)
    recent_changes: list[str] = Field(default_factory=list)


class UserContext(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None


class PromptContext(BaseModel):
    project: ProjectContext = Field(default_factory=ProjectContext)
    user: UserContext = Field(default_factory=UserContext)


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = False
    default: str | None = None
    choices: tuple[str, ...] = ()

    def metadata(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "required": self.required,
            "default": self.default,
            "enum": list(self.choices) or None,
        }


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    description: str
    tags: tuple[str, ...]
    arguments: tuple[PromptArgument, ...]
    build: Callable[[dict[str, str], PromptContext], list[tuple[Role, str]]] = field(repr=False)

    def metadata(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [arg.metadata() for arg in self.arguments],
            "tags": list(self.tags),
        }


def format_bullets(text: str) -> str:
    """
    Render free text as a bullet list.

    Multi-line input gives one bullet per line, comma-separated input one
    bullet per item; anything else becomes a single bullet.
    """
    trimmed = text.strip()
    if "\n" in trimmed:
        lines = [line.strip() for line in trimmed.split("\n") if line.strip()]
        return "\n".join(line if line.startswith("-") else f"- {line}" for line in lines)
    if "," in trimmed:
        parts = [part.strip() for part in trimmed.split(",") if part.strip()]
        return "\n".join(f"- {part}" for part in parts)
    if trimmed.startswith("-") or trimmed.startswith("*"):
        return trimmed
    return f"- {trimmed}"


def resolve_arguments(definition: PromptDefinition, provided: dict | None = None) -> dict[str, str]:
    resolved: dict[str, str] = {}
    provided = provided or {}
    for arg in definition.arguments:
        value = provided.get(arg.name)
        if value is None or value == "":
            value = arg.default
        if value is None or value == "":
            if arg.required:
                raise MissingArgumentError(f"Missing required argument: {arg.name}")
            continue

        text = value if isinstance(value, str) else json.dumps(value)
        if arg.choices and text not in arg.choices:
            raise InvalidEnumValueError(
                f"Invalid value for {arg.name}. Allowed values: {', '.join(arg.choices)}"
            )
        resolved[arg.name] = text
    return resolved


def _build_review_checklist(args: dict[str, str], context: PromptContext) -> list[tuple[Role, str]]:
    project = context.project
    text = ""
    if project.name:
        text += f"Project: {project.name}\n"
    if project.tech_stack:
        text += f"Tech stack: {', '.join(project.tech_stack)}\n"
    if project.recent_changes:
        text += "Recent changes:\n- " + "\n- ".join(project.recent_changes) + "\n\n"
    text += f"Change summary:\n{args['change_summary']}\n\n"
    if "risk_areas" in args:
        text += f"Areas of concern: {args['risk_areas']}\n\n"
    if "test_coverage" in args:
        text += f"Test coverage notes: {args['test_coverage']}\n\n"
    text += (
        "Provide a checklist of review questions grouped by theme. "
        "Highlight any missing tests or documentation."
    )
    return [
        (
            "system",
            "You are an experienced software reviewer. "
            "Produce concise, actionable review checkpoints.",
        ),
        ("user", text),
    ]


def _build_test_plan(args: dict[str, str], context: PromptContext) -> list[tuple[Role, str]]:
    text = ""
    if context.user.name:
        text += f"Primary contact: {context.user.name}\n\n"
    if context.project.description:
        text += f"Project context: {context.project.description}\n\n"
    text += f"Feature: {args['feature_name']}\nTesting level: {args['level']}\n\n"
    text += f"Acceptance criteria:\n{format_bullets(args['acceptance_criteria'])}\n\n"
    if "constraints" in args:
        text += f"Constraints to respect: {args['constraints']}\n\n"
    text += (
        "Outline recommended test scenarios, data needs, and automation opportunities. "
        "Call out risks and open questions."
    )
    return [
        (
            "system",
            "You are a senior QA engineer. "
            "Produce a thorough yet lean test plan focusing on risk-based testing.",
        ),
        ("user", text),
    ]


def _build_pr_summary(args: dict[str, str], context: PromptContext) -> list[tuple[Role, str]]:
    product = context.project.name or "this project"
    text = f"Prepare a pull request summary for {product}.\n\n"
    text += f"Diff summary:\n{args['diff_summary']}\n\n"
    if "breaking_changes" in args:
        text += f"Breaking changes: {format_bullets(args['breaking_changes'])}\n\n"
    if "open_questions" in args:
        text += f"Reviewer questions: {format_bullets(args['open_questions'])}\n\n"
    text += "Structure the response with: Overview, Testing, Risks, and Review Requests sections."
    return [
        (
            "system",
            "You help engineers communicate updates clearly. "
            "Produce a crisp summary optimised for reviewers.",
        ),
        ("user", text),
    ]


def _build_root_cause(args: dict[str, str], context: PromptContext) -> list[tuple[Role, str]]:
    text = ""
    if context.project.tech_stack:
        text += f"Environment context: {', '.join(context.project.tech_stack)}\n\n"
    text += f"Symptoms observed:\n{format_bullets(args['symptoms'])}\n\n"
    if "recent_changes" in args:
        text += f"Recent changes: {format_bullets(args['recent_changes'])}\n\n"
    if "logs" in args:
        text += f"Log excerpts:\n{args['logs']}\n\n"
    text += (
        "Provide: 1) Leading hypotheses with rationale, 2) High-value diagnostics to run, "
        "3) Mitigation ideas if the issue escalates."
    )
    return [
        (
            "system",
            "You are a pragmatic incident commander. "
            "Identify likely root causes and propose the next investigative actions.",
        ),
        ("user", text),
    ]


PROMPTS: tuple[PromptDefinition, ...] = (
    PromptDefinition(
        name="code-review-checklist",
        description="Generate a focused code review checklist for a change set.",
        tags=("code-review", "quality"),
        arguments=(
            PromptArgument("change_summary", "One to two sentence summary of the change.", True),
            PromptArgument("risk_areas", "Comma-separated areas that are risky or complex."),
            PromptArgument("test_coverage", "Existing test coverage notes."),
        ),
        build=_build_review_checklist,
    ),
    PromptDefinition(
        name="test-plan-writer",
        description="Create a pragmatic test plan for a new capability or bug fix.",
        tags=("testing", "planning"),
        arguments=(
            PromptArgument("feature_name", "Name of the feature or bug fix under test.", True),
            PromptArgument("acceptance_criteria", "Acceptance criteria or expected outcomes.", True),
            PromptArgument("constraints", "Environment or data limitations to consider."),
            PromptArgument(
                "level",
                "Primary testing level focus (unit, integration, e2e).",
                default="integration",
                choices=("unit", "integration", "e2e"),
            ),
        ),
        build=_build_test_plan,
    ),
    PromptDefinition(
        name="pr-summary",
        description="Summarise a pull request for reviewers with key highlights and risks.",
        tags=("communication", "summaries"),
        arguments=(
            PromptArgument("diff_summary", "High-level summary of code or behavior changes.", True),
            PromptArgument("breaking_changes", "List breaking changes, if any."),
            PromptArgument("open_questions", "Open questions that reviewers should weigh in on."),
        ),
        build=_build_pr_summary,
    ),
    PromptDefinition(
        name="root-cause-investigator",
        description="Guide a debugging session by proposing hypotheses and next diagnostic steps.",
        tags=("debugging", "analysis"),
        arguments=(
            PromptArgument("symptoms", "Observed symptoms or error messages.", True),
            PromptArgument("recent_changes", "Recent deployments or config changes."),
            PromptArgument("logs", "Pertinent log excerpts or metrics."),
        ),
        build=_build_root_cause,
    ),
)

PROMPTS_BY_NAME = {prompt.name: prompt for prompt in PROMPTS}


def search_prompts(tags: list[str] | None = None, search: str | None = None) -> list[PromptDefinition]:
    needle = search.lower() if search else None
    matches: list[PromptDefinition] = []
    for prompt in PROMPTS:
        if tags and not all(tag in prompt.tags for tag in tags):
            continue
        if needle and not (
            needle in prompt.name.lower()
            or needle in prompt.description.lower()
            or any(needle in tag.lower() for tag in prompt.tags)
        ):
            continue
        matches.append(prompt)
    return matches


def render_prompt(
    name: str,
    arguments: dict | None = None,
    context: PromptContext | None = None,
) -> list[tuple[Role, str]]:
    definition = PROMPTS_BY_NAME.get(name)
    if definition is None:
        raise PromptNotFoundError(f"Prompt not found: {name}")
    resolved = resolve_arguments(definition, arguments)
    return definition.build(resolved, context or PromptContext())


def _as_messages(name: str, arguments: dict) -> list[Message]:
    # MCP prompt messages only carry user/assistant roles; system text is sent first as user text.
    return [UserMessage(content=text) for _, text in render_prompt(name, arguments)]


mcp = FastMCP(
    "prompt-mcp-server",
    instructions=(
        "Use list-prompt-templates to discover templates and their arguments. "
        "Get a prompt with arguments to materialise a ready-to-send message sequence."
    ),
)


@mcp.prompt(name="code-review-checklist", description=PROMPTS_BY_NAME["code-review-checklist"].description)
def checklist_prompt(
    change_summary: str, risk_areas: str | None = None, test_coverage: str | None = None
) -> list[Message]:
    return _as_messages(
        "code-review-checklist",
        {"change_summary": change_summary, "risk_areas": risk_areas, "test_coverage": test_coverage},
    )


@mcp.prompt(name="test-plan-writer", description=PROMPTS_BY_NAME["test-plan-writer"].description)
def testplan_prompt(
    feature_name: str,
    acceptance_criteria: str,
    constraints: str | None = None,
    level: str | None = None,
) -> list[Message]:
    return _as_messages(
        "test-plan-writer",
        {
            "feature_name": feature_name,
            "acceptance_criteria": acceptance_criteria,
            "constraints": constraints,
            "level": level,
        },
    )


@mcp.prompt(name="pr-summary", description=PROMPTS_BY_NAME["pr-summary"].description)
def pr_summary_prompt(
    diff_summary: str, breaking_changes: str | None = None, open_questions: str | None = None
) -> list[Message]:
    return _as_messages(
        "pr-summary",
        {
            "diff_summary": diff_summary,
            "breaking_changes": breaking_changes,
            "open_questions": open_questions,
        },
    )


@mcp.prompt(
    name="root-cause-investigator", description=PROMPTS_BY_NAME["root-cause-investigator"].description
)
def root_cause_prompt(
    symptoms: str, recent_changes: str | None = None, logs: str | None = None
) -> list[Message]:
    return _as_messages(
        "root-cause-investigator",
        {"symptoms": symptoms, "recent_changes": recent_changes, "logs": logs},
    )


@mcp.tool(name="list-prompt-templates")
def list_prompt_templates(tags: list[str] | None = None, search: str | None = None) -> list[dict]:
    """
    List prompt templates, optionally filtered by tags (all must match) and a search term.
    """
    return [prompt.metadata() for prompt in search_prompts(tags, search)]


@mcp.tool(name="render-prompt")
def render_prompt_tool(
    name: str,
    arguments: dict[str, str] | None = None,
    context: PromptContext | None = None,
) -> dict:
    """
    Render a prompt template with arguments and optional project/user context.
    """
    try:
        messages = render_prompt(name, arguments, context)
        resolved = resolve_arguments(PROMPTS_BY_NAME[name], arguments)
    except (PromptArgumentError, PromptNotFoundError) as exc:
        logger.warning("render-prompt failed: %s", exc)
        raise ToolError(f"render-prompt failed: {exc}") from exc
    return {
        **PROMPTS_BY_NAME[name].metadata(),
        "messages": [{"role": role, "content": text} for role, text in messages],
        "provided_arguments": resolved,
    }


def main() -> None:
    setup_logging()
    logger.info("Available prompts: %s", ", ".join(PROMPTS_BY_NAME))
    mcp.run()


if __name__ == "__main__":
    main()
