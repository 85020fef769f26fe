"""Per-file documentation generator via LiteLLM.

Used by ``DocumentIndexer.document_and_index()``: the generated markdown is
indexed in place of the raw source so searches hit prose descriptions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from repocontext.config import DocumentationCfg
from repocontext.db.tokens import TokenUsageStore, provider_source
from repocontext.rag import llm_client

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = """\
You are a technical Product Manager who is compiling the tribal knowledge of \
the codebase. Analyze this code file and generate comprehensive documentation \
that serves to both describe the product and design considerations, as well as \
the detailed technical specifications.

File: {relativePath}

```
{content}
```

Please provide:
1. A clear description of the file's purpose and role in the codebase
2. List of all public interfaces, classes, and functions with their signatures
3. Dependencies and imports that other parts of the codebase might need
4. Usage examples if applicable
5. Any important implementation details or design decisions

Format the response as markdown suitable for a README file."""


@dataclass
class Analysis:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


def render_prompt(template: str, relative_path: str, content: str) -> str:
    """Fill ``{relativePath}`` and ``{content}`` placeholders in *template*.

    Plain replacement, so braces elsewhere in a custom prompt are left alone.
    """
    return template.replace("{relativePath}", relative_path).replace("{content}", content)


class Documenter:
    """Generate markdown documentation for a single source file.

    Args:
        config: Documentation section of the loaded configuration.
        tokens: Optional usage store; tokens are tracked under ``<provider>_api``.
    """

    def __init__(
        self,
        config: DocumentationCfg | None = None,
        tokens: TokenUsageStore | None = None,
    ) -> None:
        self._config = config or DocumentationCfg()
        self._tokens = tokens

    async def analyze(
        self, relative_path: str, content: str, prompt: str | None = None
    ) -> Analysis:
        """Return generated documentation for *relative_path*.

        Raises:
            ConfigurationError: The provider API key is not set.
            ExternalProviderError: The provider call failed.
        """
        llm_client.validate_api_key(self._config.model)
        rendered = render_prompt(prompt or DEFAULT_PROMPT, relative_path, content)

        completion = await llm_client.complete(
            self._config.model,
            [{"role": "user", "content": rendered}],
            max_tokens=self._config.max_tokens,
            timeout=self._config.timeout,
        )
        input_tokens = completion.input_tokens or llm_client.count_tokens(
            self._config.model, rendered
        )
        output_tokens = completion.output_tokens or llm_client.count_tokens(
            self._config.model, completion.text
        )

        if self._tokens is not None:
            source = provider_source(self._config.model)
            await asyncio.to_thread(self._tokens.track_token_usage, source, "input", input_tokens)
            await asyncio.to_thread(
                self._tokens.track_token_usage, source, "output", output_tokens
            )

        logger.debug(
            "Documented %s (%d in / %d out tokens)", relative_path, input_tokens, output_tokens
        )
        return Analysis(
            text=completion.text, input_tokens=input_tokens, output_tokens=output_tokens
        )
