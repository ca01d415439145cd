"""Render an essay with feedback segments wrapped in highlight markup.

Spans are located once against the unmodified essay and applied in a single
pass. Nested spans (including two items on the same text) render as nested
markup; a span that only partially overlaps one already placed is dropped, so
the output never contains crossed tags.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from dsegrader.feedback.categories import highlight_bucket
from dsegrader.schemas import FeedbackItem

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r?\n")
EMPTY_LINE_PLACEHOLDER = "&nbsp;"


@dataclass(frozen=True)
class HighlightSpan:
    start: int
    end: int
    item: FeedbackItem
    index: int

    def contains(self, other: "HighlightSpan") -> bool:
        return self.start <= other.start and other.end <= self.end

    def crosses(self, other: "HighlightSpan") -> bool:
        overlaps = self.start < other.end and other.start < self.end
        return overlaps and not self.contains(other) and not other.contains(self)


def _locate(essay: str, items: Sequence[FeedbackItem]) -> list[HighlightSpan]:
    spans = []
    for index, item in enumerate(items):
        if not item.segment:
            continue
        start = essay.find(item.segment)
        if start == -1:
            logger.debug("feedback segment not found in essay", extra={"ordinal": item.ordinal})
            continue
        spans.append(HighlightSpan(start=start, end=start + len(item.segment), item=item, index=index))
    return spans


def _document_order(spans: list[HighlightSpan]) -> list[HighlightSpan]:
    """Order spans by start, outermost first, keeping input order for identical ranges."""
    ordered = sorted(spans, key=lambda span: (span.start, -span.end, span.index))
    accepted: list[HighlightSpan] = []
    for span in ordered:
        clash = next((placed for placed in accepted if placed.crosses(span)), None)
        if clash is not None:
            logger.debug(
                "dropping partially overlapping highlight",
                extra={"ordinal": span.item.ordinal, "conflicts_with": clash.item.ordinal},
            )
            continue
        accepted.append(span)
    return accepted


def plan_highlights(essay: str, items: Sequence[FeedbackItem]) -> list[HighlightSpan]:
    """Return the spans that will be wrapped, in application order (last occurrence first)."""
    return list(reversed(_document_order(_locate(essay, items))))


def _open_tag(item: FeedbackItem) -> str:
    bucket = highlight_bucket(item.category).value
    return f'<span class="highlight-{bucket}" data-highlight-id="{item.ordinal}">'


def _close_tag(item: FeedbackItem) -> str:
    return f" ({item.ordinal})</span>"


def _escape(text: str) -> str:
    return html.escape(text, quote=False)


def apply_spans(essay: str, plan: Sequence[HighlightSpan]) -> str:
    """Splice markup for ``plan`` into ``essay`` in one pass."""
    pieces: list[str] = []
    cursor = 0
    stack: list[HighlightSpan] = []

    def close_until(position: int | None) -> None:
        nonlocal cursor
        while stack and (position is None or stack[-1].end <= position):
            top = stack.pop()
            pieces.append(_escape(essay[cursor : top.end]))
            pieces.append(_close_tag(top.item))
            cursor = top.end

    for span in reversed(plan):
        close_until(span.start)
        pieces.append(_escape(essay[cursor : span.start]))
        pieces.append(_open_tag(span.item))
        cursor = span.start
        stack.append(span)
    close_until(None)
    pieces.append(_escape(essay[cursor:]))
    return "".join(pieces)


def wrap_paragraphs(text: str) -> str:
    return "".join(f"<p>{line or EMPTY_LINE_PLACEHOLDER}</p>" for line in _LINE_BREAK_RE.split(text))


def highlight(essay: str, items: Sequence[FeedbackItem]) -> str:
    """Wrap every located feedback segment and split the essay into paragraphs."""
    return wrap_paragraphs(apply_spans(essay, plan_highlights(essay, items)))
