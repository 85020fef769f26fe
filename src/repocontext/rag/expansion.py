"""Query expansion — ask a small model for related search keywords.

Expansion is best-effort: any provider failure is logged and the search goes
ahead with the raw prompt.
"""

from __future__ import annotations

import asyncio
import logging

from repocontext.config import ExpansionCfg
from repocontext.db.tokens import TokenUsageStore, provider_source
from repocontext.errors import RepoContextError
from repocontext.rag import llm_client

logger = logging.getLogger(__name__)

_EXPANSION_SYSTEM_PROMPT = """\
You are a search query expansion assistant. Given a user's search query, \
generate EXACTLY {max_terms} related keywords or short phrases that would help \
find relevant code or documentation.

IMPORTANT RULES:
- Output ONLY the {max_terms} keywords/phrases, one per line
- No explanations, numbering, or formatting
- Focus on technical terms, function names, class names, or concepts related to the query
- Include synonyms, related concepts, or implementation details
- Each keyword/phrase should be 1-3 words maximum"""


class PromptExpander:
    """Expand a natural-language query into extra search keywords.

    Args:
        config: Expansion section of the loaded configuration.
        tokens: Optional usage store; provider tokens are tracked under
            ``<provider>_api``.
    """

    def __init__(
        self,
        config: ExpansionCfg | None = None,
        tokens: TokenUsageStore | None = None,
    ) -> None:
        self._config = config or ExpansionCfg()
        self._tokens = tokens

    async def expand(self, query: str) -> list[str]:
        """Return up to ``max_terms`` related keywords; ``[]`` on any failure."""
        if not self._config.enabled or not query.strip():
            return []

        system = _EXPANSION_SYSTEM_PROMPT.format(max_terms=self._config.max_terms)
        try:
            llm_client.validate_api_key(self._config.model)
            completion = await llm_client.complete(
                self._config.model,
                [
                    {"role": "system", "content": system},
                    {"role": "user", "content": query},
                ],
                max_tokens=50,
                temperature=0.3,
                timeout=self._config.timeout,
            )
        except RepoContextError as exc:
            logger.warning("Query expansion skipped: %s", exc)
            return []

        terms = [
            line.strip() for line in completion.text.strip().split("\n") if line.strip()
        ][: self._config.max_terms]
        logger.debug("Expanded %r → %s", query, terms)

        if self._tokens is not None:
            input_tokens = completion.input_tokens or llm_client.count_tokens(
                self._config.model, system + query
            )
            output_tokens = completion.output_tokens or llm_client.count_tokens(
                self._config.model, " ".join(terms)
            )
            await self._track(self._tokens, input_tokens, output_tokens)
        return terms

    async def expand_for_search(self, query: str) -> str:
        """Return ``"<query>. Related keywords: <terms>"`` or *query* unchanged."""
        terms = await self.expand(query)
        if not terms:
            return query
        return f"{query}. Related keywords: {' '.join(terms)}"

    async def _track(
        self, tokens: TokenUsageStore, input_tokens: int, output_tokens: int
    ) -> None:
        source = provider_source(self._config.model)
        await asyncio.to_thread(tokens.track_token_usage, source, "input", input_tokens)
        await asyncio.to_thread(tokens.track_token_usage, source, "output", output_tokens)
