"""
Deterministic keyword-rule replies used when no generation provider answers.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Rule:
    keywords: tuple[str, ...]
    reply: str


NAVIGATION_TRIGGERS = ("take me", "navigate", "go to")

NAVIGATION_RULES = (
    Rule(("devops",), "Taking you to the Learning Paths page where you can find the DevOps Engineer path!"),
    Rule(("home",), "Taking you home!"),
    Rule(("learning path", "paths"), "Taking you to Learning Paths!"),
    Rule(("certification", "certifications", "cert"), "Taking you to Certifications!"),
)

NAVIGATION_DEFAULT = "Where would you like to go? Try: home, learning paths, certifications, or channels."

RULES = (
    Rule(
        ("explain", "what is", "how does"),
        "I'm running on basic offline responses right now, so I can't explain that in depth. "
        "Add an AI provider key in settings for full answers.",
    ),
    Rule(("yes", "ok", "sure", "go ahead"), "Great! Let me help you with that."),
    Rule(
        ("help", "what can"),
        "I can help you navigate the site, find learning paths, and guide your learning journey. "
        "Try asking me to take you somewhere!",
    ),
)

DEFAULT_REPLY = (
    "I'm having trouble reaching the AI service. Try again in a moment, "
    "or check your provider settings."
)


def fallback_reply(transcript: str) -> str:
    """
    Pick a canned reply for a transcript.

    Rules are checked in a fixed order, so the same transcript always yields
    the same reply. The result is never empty.
    """
    text = transcript.lower()

    def mentions(phrases: tuple[str, ...]) -> bool:
        return any(re.search(rf"\b{re.escape(p)}\b", text) for p in phrases)

    if mentions(NAVIGATION_TRIGGERS):
        for rule in NAVIGATION_RULES:
            if mentions(rule.keywords):
                return rule.reply
        return NAVIGATION_DEFAULT

    for rule in RULES:
        if mentions(rule.keywords):
            return rule.reply

    return DEFAULT_REPLY
