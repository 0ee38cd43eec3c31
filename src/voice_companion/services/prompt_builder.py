"""
Prompt assembly for the generation orchestrator.

The prompt combines the persona, the live page snapshot, the validated
sitemap, directive instructions, the recent history and the user's words.
Credentials never pass through here.
"""

from collections.abc import Callable
from typing import Any, Optional

from voice_companion.models.schemas import Message
from voice_companion.models.schemas import PageContext
from voice_companion.models.schemas import Role
from voice_companion.services.route_index import RouteIndex

MAX_HEADINGS = 10
MAX_LINKS = 30
MAX_BUTTONS = 20

PERSONA = (
    "You are an expert AI learning companion, tutor, and intelligent agent. You help users "
    "learn through conversation and explanation, and by actively guiding them through the "
    "application."
)

RESPONSE_RULES = """Instructions:
- Navigation or action requests ("take me to", "go to", "show me", "start"): 1-2 sentences.
- Explanation requests ("explain", "what is", "how does", "why"): 3-5 sentences.
- If the user confirms ("yes", "ok", "sure", "go ahead"), act immediately; do not ask again.
- Never repeat a question you already asked in the history above.
- Replies are spoken aloud: no markdown, no lists."""


def format_page_context(page: PageContext, route_index: Optional[RouteIndex] = None) -> str:
    """Render the page snapshot; links to routes unknown to the index are omitted."""
    lines = [f"Current URL: {page.route}"]
    if page.title:
        lines.append(f"Page Title: {page.title}")

    headings = [h for h in page.headings if h.strip()][:MAX_HEADINGS]
    if headings:
        lines.append("Page Headings:")
        lines.extend(f"- {h}" for h in headings)

    links = [l for l in page.visible_links if route_index is None or l.href in route_index]
    if links:
        lines.append("Available Links on Page:")
        lines.extend(f"- {l.label} -> {l.href}" for l in links[:MAX_LINKS])

    buttons = [b for b in page.visible_buttons if b.strip()][:MAX_BUTTONS]
    if buttons:
        lines.append("Available Buttons:")
        lines.extend(f"- {b}" for b in buttons)

    extra = [
        ("Current page", page.page_type),
        ("Question", page.question),
        ("Answer", page.answer),
        ("Content", page.content),
    ]
    for label, value in extra:
        if value:
            lines.append(f"{label}: {value}")
    if page.tags:
        lines.append(f"Topics: {', '.join(page.tags)}")

    return "\n".join(lines)


def format_sitemap(route_index: RouteIndex, current_route: str) -> str:
    lines = ["AVAILABLE ROUTES (only navigate to these):"]
    lines.extend(f"- {path} ({title})" for path, title in route_index.items())
    current_title = route_index.title(current_route)
    location = f"{current_route} ({current_title})" if current_title else current_route
    lines.append(f"CURRENT LOCATION: {location}")
    lines.append("If unsure, navigate to the parent page rather than inventing a path.")
    return "\n".join(lines)


def format_agent_capabilities(render_marker: Callable[[dict[str, Any]], str]) -> str:
    examples = [
        ("Navigate to a page", {"type": "navigate", "path": "/learning-paths", "label": "Learning Paths"}),
        (
            "Click a button by its visible text",
            {"type": "click", "text": "Next Question", "description": "Moving to next question"},
        ),
        (
            "Scroll to content you are explaining",
            {"type": "scroll", "selector": ".question-text", "description": "Showing the question"},
        ),
        (
            "Highlight key content",
            {"type": "highlight", "selector": "code", "description": "Highlighting the code example"},
        ),
        ("Suggest a next step", {"type": "suggest", "message": "Try the practice mode to test your knowledge!"}),
    ]
    lines = [
        "AGENT CAPABILITIES:",
        "Embed actions inline in your reply; they are removed before the user sees the text.",
    ]
    for description, payload in examples:
        lines.append(f"- {description}: {render_marker(payload)}")
    lines.append("Only click buttons listed in Available Buttons; only use listed routes.")
    return "\n".join(lines)


def format_history(history: list[Message]) -> str:
    return "\n".join(
        f"{'User' if m.role == Role.USER else 'Assistant'}: {m.display_text}" for m in history
    )


def build_prompt(
    transcript: str,
    history: list[Message],
    page: Optional[PageContext],
    route_index: Optional[RouteIndex] = None,
    language_name: str = "English",
    render_marker: Optional[Callable[[dict[str, Any]], str]] = None,
) -> str:
    """
    Build the generation prompt.

    Args:
        transcript: The user's utterance
        history: Recent messages, oldest first (already windowed)
        page: Live page snapshot, if available
        route_index: Known routes for navigation grounding
        language_name: Language the assistant must answer in
        render_marker: Directive marker renderer; None disables agent actions

    Returns:
        str: Prompt text
    """
    sections = [PERSONA, f"Language: Respond in {language_name}"]

    if page is not None:
        sections.append("Current Page Context:\n" + format_page_context(page, route_index))
    else:
        sections.append("Current Page Context:\nNo specific page content available")

    if route_index is not None and len(route_index):
        sections.append(format_sitemap(route_index, page.route if page else "/"))

    if render_marker is not None:
        sections.append(format_agent_capabilities(render_marker))

    if history:
        sections.append("Conversation History:\n" + format_history(history))

    sections.append(f"User: {transcript}")
    sections.append(RESPONSE_RULES)
    sections.append(f"Assistant (in {language_name}):")
    return "\n\n".join(sections)
