"""Route a chat message to plain chat, document creation or document editing."""

import enum
import json
import logging
import re
from dataclasses import dataclass

from openai import AsyncOpenAI

from config import settings

logger = logging.getLogger(__name__)

QUICK_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.5


class IntentType(str, enum.Enum):
    CHAT_ONLY = "CHAT_ONLY"
    DOCUMENT_CREATE = "DOCUMENT_CREATE"
    DOCUMENT_EDIT = "DOCUMENT_EDIT"


@dataclass(frozen=True)
class IntentClassification:
    intent: IntentType
    confidence: float
    reason: str = ""


_CHAT_ONLY_PATTERNS = [
    re.compile(r"^(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))\b", re.I),
    re.compile(r"^(how\s+are\s+you|what\s+can\s+you\s+do|who\s+are\s+you|what\s+is\s+your\s+name)", re.I),
    re.compile(r"^(thanks|thank\s+you|bye|goodbye|see\s+you)\b", re.I),
    re.compile(r"\?$"),
]

_DOCUMENT_CREATE_KEYWORDS = [
    "generate", "create", "make", "write", "notes", "summarize", "summary",
    "explain", "document", "outline", "study guide", "flashcards", "create notes",
    "add new", "also add", "add a section", "add section", "add info",
    "add information", "include", "append", "add more", "add the", "add about",
    "how to use",
]

_ADD_CONTENT_PATTERNS = [
    re.compile(r"^add\s", re.I),
    re.compile(r"also\s+add", re.I),
    re.compile(r"add\s+.*\s+to", re.I),
    re.compile(r"include\s", re.I),
    re.compile(r"\badd\s+new", re.I),
    re.compile(r"\badd\s+(a\s+)?section", re.I),
    re.compile(r"\bversion\b", re.I),
]

CLASSIFIER_PROMPT = """You are an intent classifier for a document generation app. Classify the user's message into one of three intents:

1. CHAT_ONLY - The user wants to chat, ask questions, or get information WITHOUT creating/modifying a document. Examples: greetings, general questions, asking about capabilities.

2. DOCUMENT_CREATE - The user wants to ADD or GENERATE NEW content for a document, e.g. "create notes about X", "summarize this", "also add X", "add a section on Y", "how to use X".

3. DOCUMENT_EDIT - The user wants to MODIFY EXISTING text they have SELECTED in the document, e.g. "make this shorter", "fix the grammar". Without a selection they probably mean DOCUMENT_CREATE.

"add" or "also add" almost always means DOCUMENT_CREATE, not DOCUMENT_EDIT.

User has existing document: {has_document}

User message: "{message}"

Respond in JSON format only:
{{"intent": "CHAT_ONLY" | "DOCUMENT_CREATE" | "DOCUMENT_EDIT", "confidence": 0.0-1.0, "reason": "brief explanation"}}"""

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


def quick_classify(
    message: str,
    has_selection: bool = False,
    has_file: bool = False,
) -> IntentClassification | None:
    """Rule-based classification; None when the rules are inconclusive."""
    if has_file:
        return IntentClassification(IntentType.DOCUMENT_CREATE, QUICK_CONFIDENCE, "File upload detected")
    if has_selection:
        return IntentClassification(IntentType.DOCUMENT_EDIT, QUICK_CONFIDENCE, "Text selection detected")

    text = message.strip().lower()
    if any(p.search(text) for p in _CHAT_ONLY_PATTERNS):
        return IntentClassification(IntentType.CHAT_ONLY, QUICK_CONFIDENCE, "Chat-only pattern detected")
    if any(keyword in text for keyword in _DOCUMENT_CREATE_KEYWORDS) or any(
        p.search(text) for p in _ADD_CONTENT_PATTERNS
    ):
        return IntentClassification(
            IntentType.DOCUMENT_CREATE, QUICK_CONFIDENCE, "Document creation keyword detected"
        )
    return None


async def classify_intent_with_llm(message: str, has_document: bool = False) -> IntentClassification:
    """Ask a small model for the intent. Falls back to CHAT_ONLY on any failure."""
    prompt = CLASSIFIER_PROMPT.format(
        message=message,
        has_document="Yes" if has_document else "No",
    )
    try:
        resp = await _get_llm_client().chat.completions.create(
            model=settings.intent_model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=100,
            temperature=0,
            response_format={"type": "json_object"},
        )
        data = json.loads(resp.choices[0].message.content)
        return IntentClassification(
            intent=IntentType(data["intent"]),
            confidence=float(data.get("confidence", FALLBACK_CONFIDENCE)),
            reason=str(data.get("reason", "")),
        )
    except Exception as e:
        logger.warning("Intent classification failed, defaulting to chat: %s", e)
        return IntentClassification(IntentType.CHAT_ONLY, FALLBACK_CONFIDENCE, "Classification failed")


async def classify_intent(
    message: str,
    has_selection: bool = False,
    has_file: bool = False,
    has_document: bool = False,
) -> IntentClassification:
    quick = quick_classify(message, has_selection=has_selection, has_file=has_file)
    if quick is not None:
        return quick
    return await classify_intent_with_llm(message, has_document=has_document)
