"""
agents.py — Generation service backed by the Anthropic Messages API.

Design:
- One request per operation: leaf summary, directory summary, line correction,
  plus whole-document creation/merge for `run --write`.
- No retry here. Callers wrap every request in a RetryPolicy so the same
  budget applies no matter which operation is being retried.
- Concurrency is bounded by a semaphore shared by all requests.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Optional, Any, Protocol
import anthropic

from errors import ServiceError
from prompts import (
    SYSTEM_PROMPT, CONNECTION_TEST_PROMPT,
    leaf_prompt, directory_prompt, create_document_prompt, merge_document_prompt,
)


DEFAULT_MODEL = "claude-haiku-4-5-20251001"


class GenerationService(Protocol):
    async def summarize_leaf(self, relative_path: str, content: str) -> str: ...

    async def summarize_directory(self, name: str, child_summaries: list[str]) -> str: ...

    async def propose_line_correction(self, prompt: str) -> str: ...


class DocumentService(Protocol):
    async def create_document(self, project_summary: str, project_name: str) -> str: ...

    async def merge_document(self, existing: str, project_summary: str) -> str: ...


# ---------------------------------------------------------------------------
# Cost tracking
# ---------------------------------------------------------------------------

@dataclass
class CostTracker:
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0

    # Approximate pricing per million tokens for the default model
    PRICE_IN  = 0.80
    PRICE_OUT = 4.00

    def add(self, input_tok: int, output_tok: int):
        self.input_tokens += input_tok
        self.output_tokens += output_tok
        self.api_calls += 1

    def estimate_usd(self) -> float:
        return (self.input_tokens * self.PRICE_IN / 1_000_000
                + self.output_tokens * self.PRICE_OUT / 1_000_000)

    def report(self) -> str:
        return (
            f"API calls: {self.api_calls} | "
            f"Tokens in: {self.input_tokens:,} | Tokens out: {self.output_tokens:,} | "
            f"Est. cost: ~${self.estimate_usd():.3f}"
        )


# ---------------------------------------------------------------------------
# Core LLM caller
# ---------------------------------------------------------------------------

class Summarizer:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        model: str = DEFAULT_MODEL,
        max_concurrent: int = 8,
        max_content_chars: int = 12000,
        verbose: bool = False,
    ):
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self.max_content_chars = max_content_chars
        self.tracker = CostTracker()
        self.verbose = verbose

    async def _call(self, prompt: str, *, max_tokens: int = 1000, layer: str = "unknown") -> str:
        async with self.semaphore:
            try:
                response = await self.client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                )
            except anthropic.APIError as e:
                if self.verbose:
                    print(f"  [{layer}] API error on {self.model}: {e}", flush=True)
                raise ServiceError(f"{layer}: {e}") from e

        self.tracker.add(response.usage.input_tokens, response.usage.output_tokens)
        chunks = [
            getattr(block, "text", "")
            for block in response.content
            if getattr(block, "type", "") == "text"
        ]
        text = "\n".join(c for c in chunks if c).strip()
        if not text:
            raise ServiceError(f"{layer}: no response content")
        return text

    async def summarize_leaf(self, relative_path: str, content: str) -> str:
        if self.verbose:
            print(f"  leaf: {relative_path}", flush=True)
        prompt = leaf_prompt(
            relative_path=relative_path,
            content=content,
            max_chars=self.max_content_chars,
        )
        return await self._call(prompt, max_tokens=600, layer="leaf")

    async def summarize_directory(self, name: str, child_summaries: list[str]) -> str:
        if self.verbose:
            print(f"  directory: {name} ({len(child_summaries)} children)", flush=True)
        prompt = directory_prompt(name=name, child_summaries=child_summaries)
        return await self._call(prompt, max_tokens=800, layer="directory")

    async def propose_line_correction(self, prompt: str) -> str:
        return await self._call(prompt, max_tokens=400, layer="line")

    async def create_document(self, project_summary: str, project_name: str) -> str:
        prompt = create_document_prompt(project_name=project_name, project_summary=project_summary)
        return await self._call(prompt, max_tokens=3000, layer="document")

    async def merge_document(self, existing: str, project_summary: str) -> str:
        prompt = merge_document_prompt(existing=existing, project_summary=project_summary)
        return await self._call(prompt, max_tokens=4000, layer="document")

    async def test_connection(self) -> str:
        return await self._call(CONNECTION_TEST_PROMPT, max_tokens=20, layer="test")
