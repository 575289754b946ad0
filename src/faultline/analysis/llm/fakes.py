"""In-memory fake LLM backend for testing.

Scripted replies, no network. Satisfies the LLMBackend protocol.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from faultline.constants import ADVISOR_NO_ERRORS


class FakeLLMBackend:
    """Replays canned replies and records every prompt it receives.

    ``replies`` are consumed in order; the last one repeats. An
    exception instance in the list is raised instead of returned.
    """

    def __init__(
        self,
        replies: Sequence[str | BaseException] = (ADVISOR_NO_ERRORS,),
        *,
        available: bool = True,
        delay_seconds: float = 0.0,
    ) -> None:
        self._replies = list(replies) or [ADVISOR_NO_ERRORS]
        self.available = available
        self.delay_seconds = delay_seconds
        self.prompts: list[str] = []
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    async def complete(
        self,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        index = min(self.calls, len(self._replies)) - 1
        reply = self._replies[index]
        if isinstance(reply, BaseException):
            raise reply
        return reply
