"""Incremental detection of the review/revision separator.

Providers stream text in arbitrarily sized fragments, so the separator can
arrive split across two or more of them. The splitter only ever holds back
the shortest tail that could still turn into the separator; everything else
is emitted as soon as it is known to be review text.
"""

from __future__ import annotations

from complens_core.models import ReviewEvent, RevisionEvent, StreamEvent
from complens_core.prompt import SEPARATOR


def _partial_match_length(buffer: str, separator: str) -> int:
    """Length of the longest suffix of ``buffer`` that is a proper prefix of ``separator``."""
    for size in range(min(len(buffer), len(separator) - 1), 0, -1):
        if buffer.endswith(separator[:size]):
            return size
    return 0


class SentinelSplitter:
    """Splits one provider answer into review and revision events.

    Owned by exactly one review run. Feed fragments in arrival order, then
    call ``finish()`` once the provider stream has ended.
    """

    def __init__(self, separator: str = SEPARATOR):
        if not separator:
            raise ValueError("separator must be a non-empty string")
        self.separator = separator
        self.found = False
        self._pending = ""
        self._review_parts: list[str] = []
        self._revision = ""

    @property
    def review_text(self) -> str:
        """All review text emitted so far."""
        return "".join(self._review_parts)

    def feed(self, fragment: str) -> list[StreamEvent]:
        if not fragment:
            return []

        if self.found:
            self._revision += fragment
            return [RevisionEvent(self._revision)]

        buffer = self._pending + fragment
        index = buffer.find(self.separator)

        if index >= 0:
            events: list[StreamEvent] = []
            head = buffer[:index]
            if head:
                events.append(self._review(head))
            self.found = True
            self._pending = ""
            tail = buffer[index + len(self.separator) :]
            if tail:
                self._revision = tail
                events.append(RevisionEvent(self._revision))
            return events

        held = _partial_match_length(buffer, self.separator)
        ready = buffer[: len(buffer) - held]
        self._pending = buffer[len(buffer) - held :]
        return [self._review(ready)] if ready else []

    def finish(self) -> list[StreamEvent]:
        if not self.found:
            if self._pending:
                pending, self._pending = self._pending, ""
                return [self._review(pending)]
            return []
        if not self._revision:
            # Lets consumers tell "separator seen, nothing after it" apart
            # from "separator never seen".
            return [RevisionEvent("")]
        return []

    def _review(self, chunk: str) -> ReviewEvent:
        self._review_parts.append(chunk)
        return ReviewEvent(chunk)


def split_complete(text: str, separator: str = SEPARATOR) -> tuple[list[StreamEvent], SentinelSplitter]:
    """Split a complete (non-streamed) answer in one step.

    Returns the events together with the splitter so callers can read the
    review portion back without re-scanning the events.
    """
    splitter = SentinelSplitter(separator)
    events = splitter.feed(text)
    events.extend(splitter.finish())
    return events, splitter
