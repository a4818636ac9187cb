# src/reasoning/prompts.py - v1
"""Prompt templates for the THINK, DECIDE and BUILD reasoning calls.

Templates are filled with ``str.format``; literal braces are doubled.
"""

from __future__ import annotations

from paygent.core.models import RetrievedMemory, Service

SERVICE_DESCRIPTIONS: dict[Service, str] = {
    Service.VOYAGE: "Semantic embedding service for memory search",
    Service.MONGODB: "Vector database for storing and retrieving memories",
    Service.CDP: "Cryptocurrency payment service for autonomous transactions",
}

_AGENT_INTRO = (
    "You are an autonomous AI agent that can acquire its own tools by paying "
    "for them with cryptocurrency."
)

THINK_SYSTEM = """{intro}

Your task is to analyze a user's goal and create an execution plan.

You have access to the following PAYWALLED services (require payment to use):
{services}

Analyze the goal and determine what steps are needed. Be concise but thorough.

Respond only with valid JSON:
{{
  "thought": "Your analysis of the goal and what needs to be done",
  "action": "The first action to take",
  "requiredServices": ["voyage", "mongodb", "cdp"]
}}"""

DECIDE_SYSTEM = """{intro}

You are in the DECIDE phase. Based on the user's goal and retrieved memories,
determine if you need to pay for any services.

Currently active entitlements (already paid for): {active}

Available services that require payment:
{services}

Respond only with valid JSON:
{{
  "needsPayment": true,
  "services": ["voyage", "mongodb"],
  "reasoning": "Explanation of why these services are needed"
}}"""

DECIDE_USER = """Goal: {goal}

Retrieved memories:
{memories}"""

BUILD_SYSTEM = """{intro}

You are in the BUILD phase. Create a tangible artifact for the user's goal.
This could be:
- Code (Python, TypeScript, etc.)
- A technical specification
- A document or analysis

Use the retrieved memories as context to inform your output.

Respond only with valid JSON:
{{
  "name": "artifact-name",
  "type": "code | spec | document",
  "description": "What this artifact does",
  "content": "The actual content (code, markdown, etc.)"
}}"""

BUILD_USER = """Goal: {goal}

Relevant context from memory:
{memories}"""


def format_services() -> str:
    return "\n".join(f"- {s.value}: {desc}" for s, desc in SERVICE_DESCRIPTIONS.items())


def format_memories(memories: list[RetrievedMemory], with_scores: bool = False) -> str:
    """Bullet list of memory texts, or a placeholder when there are none."""
    if not memories:
        return "No relevant memories found."
    if with_scores:
        return "\n".join(f"- {m.text} (relevance: {m.score * 100:.1f}%)" for m in memories)
    return "\n".join(f"- {m.text}" for m in memories)


def think_system() -> str:
    return THINK_SYSTEM.format(intro=_AGENT_INTRO, services=format_services())


def decide_system(active: list[Service]) -> str:
    active_text = ", ".join(s.value for s in active) if active else "NONE"
    return DECIDE_SYSTEM.format(intro=_AGENT_INTRO, active=active_text, services=format_services())


def build_system() -> str:
    return BUILD_SYSTEM.format(intro=_AGENT_INTRO)
