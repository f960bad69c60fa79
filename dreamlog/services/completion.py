# dreamlog/services/completion.py
"""
Completion proxy.

Every mode shares one backbone: assemble an ordered list of chat
messages (persona, optional digests and rolling summary, a bounded window
of prior turns, the current text cut to a fixed budget), send it once to
the external chat-completions endpoint, then post-process the reply:

- summarize: fenced code blocks and surrounding quotes removed, plain text
- analyze: the raw upstream response, with fenced code removed from the
  message content
- find-similar: the reply parsed as a list of artworks and flattened to at
  most five ``{title, author, desc, value, type}`` entries
- interpret: block or whole-dream interpretation, cleaned like summarize
- rolling summary: a compressed digest of a block conversation

There are no retries. Every call runs under an explicit deadline; a timeout
raises ``CompletionTimeout`` so it can be told apart from an upstream
rejection (``CompletionError``).
"""
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from dreamlog.services import prompts

logger = logging.getLogger(__name__)

TEXT_BUDGET = 4000
SUMMARY_HISTORY_WINDOW = 30
ANALYZE_TURN_WINDOW = 10
MAX_SIMILAR_ARTWORKS = 5
ROLLING_SUMMARY_TEXT_BUDGET = 2000
ARTWORK_DIALOG_PREFIX = "artwork__"

_FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_FENCE_MARKER_RE = re.compile(r"```(?:json)?\s*")
_SURROUNDING_QUOTES_RE = re.compile(r"^[\"'`]+|[\"'`]+$")

Message = Dict[str, str]


class CompletionError(Exception):
    """The completion service failed or answered with something unusable."""


class CompletionTimeout(CompletionError):
    """The completion service did not answer before the deadline."""


class CompletionClient:
    def __init__(
        self,
        api_key: Optional[str],
        url: str,
        model: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "CompletionClient":
        return cls(
            api_key=settings.COMPLETION_API_KEY,
            url=settings.COMPLETION_API_URL,
            model=settings.COMPLETION_MODEL,
            timeout=settings.COMPLETION_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
            return await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise CompletionError("completion service API key is not configured")

        payload = {
            "model": self.model,
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }
        try:
            response = await asyncio.wait_for(self._post(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("Completion request timed out after %.1fs", self.timeout)
            raise CompletionTimeout(f"completion service did not answer within {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"completion service unreachable: {exc}") from exc

        if response.is_error:
            logger.error("Completion service HTTP %s: %.200s", response.status_code, response.text)
            raise CompletionError(f"completion service returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise CompletionError("completion service returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise CompletionError("completion service returned an unexpected payload")
        return data


# ---------------------------------------------------------------------------
# Reply post-processing
# ---------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    """Remove fenced code blocks, content included."""
    return _FENCED_BLOCK_RE.sub("", text or "")


def unwrap_code_fences(text: str) -> str:
    """Drop the ``` markers but keep what they enclose."""
    return _FENCE_MARKER_RE.sub("", text or "").strip()


def clean_plain_text(text: str) -> str:
    return _SURROUNDING_QUOTES_RE.sub("", strip_code_fences(text).strip()).strip()


def _first_message(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    return message if isinstance(message, dict) else None


def reply_text(response: Dict[str, Any]) -> str:
    message = _first_message(response)
    if message is None:
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def sanitize_reply(response: Dict[str, Any]) -> Dict[str, Any]:
    """Strip fenced code from the reply in place; keep the raw text if nothing is left."""
    message = _first_message(response)
    if message is None:
        raise CompletionError("completion response has no choices")
    raw = message.get("content") if isinstance(message.get("content"), str) else ""
    cleaned = strip_code_fences(raw).strip()
    message["content"] = cleaned or raw
    return response


def _fallback_artwork(text: str) -> Dict[str, Any]:
    return {"title": "", "type": "default", "author": "", "desc": text, "value": ""}


def parse_similar(content: str) -> List[Any]:
    """
    Read the artwork list out of a reply.

    Accepts a JSON array, a ``{"works": [...]}`` object or a single motif
    group. Anything that is not JSON, an empty reply included, becomes a
    one-item list holding the text.
    """
    text = unwrap_code_fences(content)
    try:
        parsed = json.loads(text)
    except ValueError:
        return [_fallback_artwork(text)]

    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        works = parsed.get("works")
        if isinstance(works, list) and "motif" not in parsed:
            return works
        return [parsed]
    return [_fallback_artwork(text)]


def _artwork(work: Dict[str, Any]) -> Dict[str, Any]:
    kind = work.get("type")
    return {
        "title": work.get("title") or "",
        "author": work.get("author") or "",
        "desc": work.get("desc") or "",
        "value": work.get("value") or "",
        "type": kind if kind in prompts.ARTWORK_TYPES else "default",
    }


def flatten_similar_artworks(items: Any) -> List[Any]:
    """
    Normalize the two shapes the upstream produces.

    Flat lists (first item has a title and an author) are returned as they
    are. Motif groups ``[{"motif": ..., "works": [...]}, ...]`` are flattened
    across all motifs, deduplicated by title and author, and capped at
    five. Any other shape passes through.
    """
    if not isinstance(items, list) or not items:
        return []

    first = items[0]
    if isinstance(first, dict) and first.get("title") and first.get("author"):
        return items

    if isinstance(first, dict) and first.get("motif") and isinstance(first.get("works"), list):
        flat = []
        seen = set()
        for group in items:
            works = group.get("works") if isinstance(group, dict) else None
            if not isinstance(works, list):
                continue
            for work in works:
                if not isinstance(work, dict):
                    continue
                artwork = _artwork(work)
                # The same work may be listed under several motifs
                identity = (artwork["title"], artwork["author"])
                if identity in seen:
                    continue
                seen.add(identity)
                flat.append(artwork)
        return flat[:MAX_SIMILAR_ARTWORKS]

    return items


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

def _clip(text: Optional[str], budget: int = TEXT_BUDGET) -> str:
    return (text or "")[:budget]


def build_summary_messages(
    history: Sequence[Message],
    block_text: Optional[str] = None,
    existing_summary: Optional[str] = None,
) -> List[Message]:
    messages: List[Message] = [{"role": "system", "content": prompts.DIALOG_PERSONA}]
    if existing_summary:
        messages.append({"role": "system", "content": f"Summary of the conversation so far:\n{existing_summary}"})
    if block_text:
        messages.append({"role": "system", "content": f"Dream text:\n{_clip(block_text)}"})
    messages.extend(list(history)[-SUMMARY_HISTORY_WINDOW:])
    messages.append({"role": "user", "content": prompts.FINAL_INTERPRETATION_PROMPT})
    return messages


def build_analyze_messages(
    block_text: str,
    last_turns: Sequence[Message] = (),
    rolling_summary: Optional[str] = None,
    extra_system_prompt: Optional[str] = None,
    dream_summary: Optional[str] = None,
    auto_summary: Optional[str] = None,
    block_id: Optional[str] = None,
) -> List[Message]:
    is_artwork_dialog = bool(block_id) and block_id.startswith(ARTWORK_DIALOG_PREFIX)
    persona = prompts.ART_DIALOG_PERSONA if is_artwork_dialog else prompts.DIALOG_PERSONA

    messages: List[Message] = [{"role": "system", "content": persona}]
    if auto_summary:
        messages.append({"role": "system", "content": f"Dream digest:\n{auto_summary}"})
    if dream_summary:
        messages.append({"role": "system", "content": f"Context from the dreamer:\n{dream_summary}"})
    if rolling_summary:
        messages.append({"role": "system", "content": f"Rolling summary of the dialogue:\n{rolling_summary}"})
    messages.append({"role": "system", "content": f"Current block:\n{_clip(block_text)}"})
    messages.extend(list(last_turns)[-ANALYZE_TURN_WINDOW:])
    if extra_system_prompt:
        messages.append({"role": "system", "content": extra_system_prompt})
    return messages


def build_find_similar_messages(
    dream_text: str,
    global_final_interpretation: Optional[str] = None,
    block_interpretations: Optional[str] = None,
) -> List[Message]:
    parts = [f'Dream plot: """{_clip(dream_text)}"""']
    if global_final_interpretation and global_final_interpretation.strip():
        parts.append(f'Final interpretation of the dream: """{global_final_interpretation.strip()}"""')
    if block_interpretations and block_interpretations.strip():
        parts.append(f'Interpretations of the dream blocks: """{_clip(block_interpretations.strip())}"""')

    return [
        {"role": "system", "content": prompts.ART_EXPERT_PERSONA},
        {"role": "user", "content": prompts.FIND_SIMILAR_PROMPT.format(context="\n\n".join(parts))},
    ]


def format_turns(turns: Sequence[Message]) -> str:
    lines = []
    for turn in turns:
        label = "User" if turn.get("role") == "user" else "Assistant"
        lines.append(f"{label}: {turn.get('content', '')}")
    return "\n".join(lines)


def build_rolling_summary_messages(
    block_text: Optional[str],
    previous_summary: Optional[str],
    new_turns: Sequence[Message],
) -> List[Message]:
    parts = [prompts.SUMMARY_UPDATE_PROMPT, f"Dream fragment:\n{_clip(block_text, ROLLING_SUMMARY_TEXT_BUDGET)}"]
    if previous_summary:
        parts.append(f"Previous dialogue summary:\n{previous_summary}")
        parts.append(f"New messages:\n{format_turns(new_turns)}")
        parts.append("Update the summary with the key points of the new messages.")
    else:
        parts.append(f"Dialogue messages:\n{format_turns(new_turns)}")
        parts.append("Write a short summary of this dialogue.")
    return [{"role": "user", "content": "\n\n".join(parts)}]


def build_block_interpretation_messages(
    block_text: str,
    auto_summary: Optional[str] = None,
    dream_summary: Optional[str] = None,
    rolling_summary: Optional[str] = None,
    recent_turns: Sequence[Message] = (),
) -> List[Message]:
    parts = [
        prompts.BLOCK_INTERPRETATION_PROMPT,
        f"Dream digest:\n{auto_summary or 'Not provided'}",
        f"Context from the dreamer:\n{dream_summary or 'Not provided'}",
        f"Current block:\n{_clip(block_text)}",
        f"Rolling summary of the dialogue:\n{rolling_summary or 'The dialogue has just started'}",
    ]
    if recent_turns:
        parts.append(f"Latest messages (after the summary):\n{format_turns(recent_turns)}")
    parts.append(prompts.BLOCK_INTERPRETATION_REQUEST)
    return [{"role": "user", "content": "\n\n".join(parts)}]


def format_block_context(
    index: int,
    block_text: Optional[str],
    rolling_summary: Optional[str] = None,
    recent_turns: Sequence[Message] = (),
) -> str:
    """One ``### Block N`` section of the final interpretation prompt (``index`` is 1-based)."""
    lines = [f"### Block {index}:", block_text or ""]
    if rolling_summary:
        lines.append(f"Dialogue summary:\n{rolling_summary}")
    if recent_turns:
        lines.append(f"Latest messages:\n{format_turns(recent_turns)}")
    return "\n".join(lines)


def build_final_interpretation_messages(
    dream_text: str,
    auto_summary: Optional[str] = None,
    dream_summary: Optional[str] = None,
    blocks_context: Sequence[str] = (),
) -> List[Message]:
    parts = [
        prompts.FINAL_INTERPRETATION_PROMPT,
        f"Dream digest:\n{auto_summary or 'Not provided'}",
        f"Context from the dreamer:\n{dream_summary or 'Not provided'}",
        f"Dream text:\n{_clip(dream_text)}",
        "Dialogues by block (latest messages included):\n\n" + "\n\n".join(blocks_context),
        prompts.FINAL_INTERPRETATION_REQUEST,
    ]
    return [{"role": "user", "content": "\n\n".join(parts)}]


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

async def summarize(
    client: CompletionClient,
    history: Sequence[Message],
    block_text: Optional[str] = None,
    existing_summary: Optional[str] = None,
) -> str:
    response = await client.complete(
        build_summary_messages(history, block_text, existing_summary),
        max_tokens=600,
        temperature=0.5,
    )
    return clean_plain_text(reply_text(response))


async def analyze(client: CompletionClient, messages: Sequence[Message]) -> Dict[str, Any]:
    response = await client.complete(messages, max_tokens=500, temperature=0.7)
    return sanitize_reply(response)


async def find_similar(
    client: CompletionClient,
    dream_text: str,
    global_final_interpretation: Optional[str] = None,
    block_interpretations: Optional[str] = None,
) -> List[Any]:
    response = await client.complete(
        build_find_similar_messages(dream_text, global_final_interpretation, block_interpretations),
        max_tokens=1500,
        temperature=0.7,
    )
    similar = flatten_similar_artworks(parse_similar(reply_text(response)))
    return similar[:MAX_SIMILAR_ARTWORKS]


async def auto_summary(client: CompletionClient, dream_text: str) -> str:
    response = await client.complete(
        [
            {"role": "system", "content": prompts.AUTO_SUMMARY_PERSONA},
            {"role": "user", "content": prompts.AUTO_SUMMARY_PROMPT.format(dream_text=_clip(dream_text))},
        ],
        max_tokens=200,
        temperature=0.5,
    )
    return clean_plain_text(reply_text(response))


async def update_rolling_summary(client: CompletionClient, messages: Sequence[Message]) -> str:
    response = await client.complete(messages, max_tokens=300, temperature=0.3)
    return reply_text(response).strip()


async def interpret(client: CompletionClient, messages: Sequence[Message], *, max_tokens: int) -> str:
    """Block or whole-dream interpretation, returned as plain text."""
    response = await client.complete(messages, max_tokens=max_tokens, temperature=0.7)
    return clean_plain_text(reply_text(response))
