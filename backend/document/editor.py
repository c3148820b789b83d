"""Edit collaborator: rewrite a selected Markdown passage per a user instruction."""

import logging

from openai import AsyncOpenAI, OpenAIError

from config import settings
from document.errors import EditFailedError

logger = logging.getLogger(__name__)

EDIT_PROMPT = """You are editing a piece of text. The text may contain Markdown formatting (like **bold**, *italic*, etc.).

Selected text: "{selected}"

User instruction: {instruction}

IMPORTANT:
- Return ONLY the edited text, no explanation or quotes around it.
- If the original text had Markdown formatting, preserve or adapt it appropriately in your response.
- Match the style and formatting of the original."""

_llm_client: AsyncOpenAI | None = None


def _get_llm_client() -> AsyncOpenAI:
    global _llm_client
    if _llm_client is None:
        _llm_client = AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
        )
    return _llm_client


async def edit_text(original_markdown: str, instruction: str) -> str:
    """Ask the LLM for a replacement of ``original_markdown``.

    The Markdown source (not the rendered text) is sent so formatting can be
    preserved.

    Raises:
        EditFailedError: On API errors or an empty/whitespace-only result.
    """
    if not instruction or not instruction.strip():
        raise EditFailedError("Missing edit instruction")

    prompt = EDIT_PROMPT.format(selected=original_markdown, instruction=instruction.strip())
    client = _get_llm_client()
    try:
        response = await client.chat.completions.create(
            model=settings.edit_model,
            messages=[{"role": "user", "content": prompt}],
            temperature=settings.llm_temperature,
        )
    except OpenAIError as e:
        logger.warning("LLM edit failed: %s", e)
        raise EditFailedError(str(e)) from e

    content = response.choices[0].message.content if response.choices else None
    edited = (content or "").strip()
    if not edited:
        raise EditFailedError("LLM returned an empty edit")
    return edited
