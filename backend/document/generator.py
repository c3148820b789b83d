"""Generation collaborator: produce document content and chat replies via the LLM."""

import logging

import tiktoken
from openai import AsyncOpenAI, OpenAIError

from config import settings
from document.errors import GenerationFailedError
from document.selection import Selection

logger = logging.getLogger(__name__)

DOCUMENT_SYSTEM_PROMPT = (
    "Explain concepts step by step like a teacher. Rules:\n"
    "- Use paragraphs for normal explanatory text.\n"
    "- Use h1 only for main titles or primary sections.\n"
    "- Use h2 for subsections.\n"
    "- Use h3 for minor sections or breakdowns.\n"
    "- Use strong only for key terms or short emphasis (never entire sentences).\n"
    "- Use emphasis sparingly for tone or nuance.\n"
    "- Use unordered or ordered lists for grouped or sequential information.\n"
    "- Use blockquotes only for callouts, notes, or important observations.\n"
    "- Use inline code for short technical references, variables, or commands.\n"
    "- Use code blocks only for executable or structured code.\n"
    "\n"
    "Constraints:\n"
    "- Do not invent new formatting types.\n"
    "- Do not nest headings incorrectly.\n"
    "- Do not overuse emphasis or strong text.\n"
    "- Keep paragraphs concise and readable.\n"
    "- Prefer clarity and hierarchy over decoration.\n"
)

CHAT_SYSTEM_PROMPT = (
    "You are Notova, an AI study-notes assistant. Answer conversationally and "
    "briefly. Do not produce document content unless asked to."
)

DOCUMENT_CONTEXT_PROMPT = (
    "You are Notova, an AI based study notes generation software. You will be given "
    "the following document content. Use it to answer questions. Format the "
    "information without using markdown table separators.\n\n{document}"
)

_llm_client: AsyncOpenAI | None = None
_tokenizer = None


def _get_llm_client() -> AsyncOpenAI:
    global _llm_client
    if _llm_client is None:
        _llm_client = AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
        )
    return _llm_client


def _get_tokenizer():
    global _tokenizer
    if _tokenizer is None:
        _tokenizer = tiktoken.get_encoding("cl100k_base")
    return _tokenizer


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Trim ``text`` to at most ``max_tokens`` cl100k tokens."""
    tokenizer = _get_tokenizer()
    tokens = tokenizer.encode(text)
    if len(tokens) <= max_tokens:
        return text
    logger.info("Truncating document context from %d to %d tokens", len(tokens), max_tokens)
    return tokenizer.decode(tokens[:max_tokens])


def with_selection_context(message: str, selection: Selection | None) -> str:
    """Prefix a user message with the selected passage it refers to."""
    if selection is None:
        return message
    return (
        f'[Context from document - Block {selection.block_id}]: "{selection.selected_text}"'
        f"\n\n{message}"
    )


def build_messages(
    history: list[dict],
    system_prompt: str,
    document_text: str | None = None,
) -> list[dict]:
    """Assemble the chat-completions message list."""
    messages = [{"role": "system", "content": system_prompt}]
    if document_text:
        document = truncate_to_tokens(document_text, settings.max_document_tokens)
        messages.append({
            "role": "system",
            "content": DOCUMENT_CONTEXT_PROMPT.format(document=document),
        })
    messages.extend(
        {"role": m["role"], "content": m["content"]}
        for m in history
        if m.get("role") in ("user", "assistant") and m.get("content")
    )
    return messages


async def _complete(messages: list[dict], model: str, temperature: float) -> str:
    client = _get_llm_client()
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
        )
    except OpenAIError as e:
        logger.warning("LLM generation failed: %s", e)
        raise GenerationFailedError(str(e)) from e

    content = response.choices[0].message.content if response.choices else None
    if not content or not content.strip():
        raise GenerationFailedError("LLM returned empty content")
    return content


async def generate_content(history: list[dict], document_text: str | None = None) -> str:
    """Generate new document content from the conversation so far.

    Args:
        history: Chat messages (``{"role", "content"}``), oldest first, ending
            with the user's request.
        document_text: Optional extracted text of an uploaded source document.

    Returns:
        Markdown text, to be split into blocks by the caller.

    Raises:
        GenerationFailedError: On API errors or empty output.
    """
    messages = build_messages(history, DOCUMENT_SYSTEM_PROMPT, document_text)
    return await _complete(messages, settings.llm_model, settings.llm_temperature)


async def chat_reply(history: list[dict], document_text: str | None = None) -> str:
    """Conversational reply that does not touch the document."""
    messages = build_messages(history, CHAT_SYSTEM_PROMPT, document_text)
    return (await _complete(messages, settings.llm_model, settings.llm_temperature)).strip()
