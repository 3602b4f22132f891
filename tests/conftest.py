"""Shared test helpers: a fake structured generator standing in for the LLM."""

import asyncio
from typing import Any, List, Optional


class FakeGenerator:
    """Answers ``invoke`` with a canned value after an optional delay."""

    provider = "fake"

    def __init__(
        self,
        value: Any = None,
        delay_s: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.value = value
        self.delay_s = delay_s
        self.error = error
        self.calls: List[dict] = []

    async def invoke(self, prompt_template, variables, input_schema, output_schema):
        self.calls.append(
            {
                "prompt_template": prompt_template,
                "variables": variables,
                "input_schema": input_schema,
                "output_schema": output_schema,
            }
        )
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.value
