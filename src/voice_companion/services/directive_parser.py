"""
Directive extraction from generated replies.

Generated text may embed action directives as inline markers. The parser
splits a reply into the text the user sees (markers removed) and the ordered
list of well-formed directives. The marker syntax is pluggable so that the
prompt builder and the parser always agree on it.
"""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from voice_companion.models.schemas import ActionDirective
from voice_companion.models.schemas import ParsedReply
from voice_companion.models.schemas import directive_adapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkerMatch:
    start: int
    end: int
    payload: Optional[dict[str, Any]]  # None when the marker body is malformed


class DirectiveSyntax(Protocol):
    def find(self, text: str) -> Iterator[MarkerMatch]: ...

    def render(self, payload: dict[str, Any]) -> str: ...


class JsonMarkerSyntax:
    """``[ACTION:{...}]`` markers with a JSON object body."""

    def __init__(self, prefix: str = "[ACTION:", suffix: str = "]"):
        self.prefix = prefix
        self.suffix = suffix
        self._decoder = json.JSONDecoder()

    def render(self, payload: dict[str, Any]) -> str:
        return f"{self.prefix}{json.dumps(payload, ensure_ascii=False)}{self.suffix}"

    def find(self, text: str) -> Iterator[MarkerMatch]:
        """
        Yield every marker in text, in order.

        The JSON body is decoded in place, so brackets inside string values do
        not end the marker early. A body that fails to decode is reported with
        payload None and spans up to the next closing bracket (or end of line
        when there is none).
        """
        pos = 0
        while True:
            start = text.find(self.prefix, pos)
            if start == -1:
                return

            body = self._skip_spaces(text, start + len(self.prefix))
            match = self._decode(text, start, body)
            if match is None:
                close = text.find(self.suffix, body)
                if close == -1:
                    newline = text.find("\n", body)
                    end = newline if newline != -1 else len(text)
                else:
                    end = close + len(self.suffix)
                match = MarkerMatch(start, end, None)

            yield match
            pos = match.end

    def _decode(self, text: str, start: int, body: int) -> Optional[MarkerMatch]:
        if not text.startswith("{", body):
            return None
        try:
            payload, after = self._decoder.raw_decode(text, body)
        except ValueError:
            return None

        close = self._skip_spaces(text, after)
        if not text.startswith(self.suffix, close):
            return None
        return MarkerMatch(start, close + len(self.suffix), payload if isinstance(payload, dict) else None)

    @staticmethod
    def _skip_spaces(text: str, index: int) -> int:
        while index < len(text) and text[index] in " \t":
            index += 1
        return index


def _join_around_cuts(pieces: list[str]) -> str:
    result = pieces[0]
    for piece in pieces[1:]:
        if result[-1:].isspace() and piece[:1].isspace():
            result = result.rstrip(" \t")
        result += piece
    return result.strip()


class DirectiveParser:
    """Splits generated text into display text and action directives."""

    def __init__(self, syntax: Optional[DirectiveSyntax] = None):
        self.syntax = syntax or JsonMarkerSyntax()

    def render(self, payload: dict[str, Any]) -> str:
        return self.syntax.render(payload)

    def contains_marker(self, text: str) -> bool:
        return next(iter(self.syntax.find(text)), None) is not None

    def parse(self, raw_text: str) -> ParsedReply:
        """
        Parse a generated reply.

        Every marker is removed from the display text, well-formed or not.
        Malformed directives are logged and dropped; the rest keep their
        textual order.

        Args:
            raw_text: Text as returned by the generation provider

        Returns:
            ParsedReply: display text plus directives
        """
        pieces: list[str] = []
        directives: list[ActionDirective] = []
        last = 0

        for match in self.syntax.find(raw_text):
            pieces.append(raw_text[last : match.start])
            last = match.end

            directive = self._to_directive(match.payload, raw_text[match.start : match.end])
            if directive is not None:
                directives.append(directive)

        pieces.append(raw_text[last:])
        return ParsedReply(
            raw_text=raw_text, display_text=_join_around_cuts(pieces), directives=directives
        )

    def _to_directive(
        self, payload: Optional[dict[str, Any]], marker: str
    ) -> Optional[ActionDirective]:
        if payload is None:
            logger.warning(f"Dropping malformed directive marker: {marker[:120]}")
            return None

        data = dict(payload)
        if "kind" not in data and "type" in data:
            data["kind"] = data.pop("type")

        try:
            return directive_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning(
                f"Dropping invalid directive {data.get('kind', '?')}: {e.error_count()} error(s)"
            )
            logger.debug(f"Invalid directive payload {marker[:120]}: {e}")
            return None
