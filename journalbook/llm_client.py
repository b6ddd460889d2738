import asyncio
import logging
import re
from typing import Optional

import httpx

from journalbook.errors import GenerationFailed
from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

#----------text polish---------------

def _sanitize_llm_text(out: str) -> str:
    """Remove assistant-y prefaces and unwrap code fences/quotes."""
    if not out:
        return ""
    s = out.strip()
    # Prefer content inside triple backticks if present
    m = re.search(r"```(?:\w+)?\s*([\s\S]*?)```", s)
    if m and m.group(1).strip():
        s = m.group(1).strip()
    # Drop common preface lines like "Here is the chapter:", "Rewritten version:", etc.
    lines = [ln.rstrip() for ln in s.splitlines()]
    while lines:
        head = lines[0].strip()
        if not head:
            lines.pop(0)
            continue
        low = head.lower().rstrip(":")
        boiler = (
            "here you go" in low or
            "here is" in low or
            "here's" in low or
            "rewritten version" in low or
            "revised version" in low or
            "final version" in low or
            (head.endswith(":") and ("chapter" in low or "prologue" in low or "introduction" in low))
        )
        if boiler and len(head) <= 120:
            lines.pop(0)
            continue
        break
    s = "\n".join(lines).strip()
    # Unwrap matching surrounding quotes
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("“") and s.endswith("”")):
        inner = s[1:-1].strip()
        if inner:
            s = inner
    return s


#----------providers---------------

async def _ollama_generate(client: httpx.AsyncClient, system: str, user: str, temperature: float) -> str:
    payload = {
        "model": settings.OLLAMA_MODEL,
        "prompt": f"{system}\n\n---\n{user}\n---\n",
        "stream": False,
        "options": {"temperature": temperature},
    }
    r = await client.post(f"{settings.OLLAMA_BASE_URL.rstrip('/')}/api/generate", json=payload)
    r.raise_for_status()
    data = r.json()
    return (data or {}).get("response", "") or ""


async def _openai_generate(client: httpx.AsyncClient, system: str, user: str, temperature: float) -> str:
    if not settings.OPENAI_API_KEY:
        raise GenerationFailed("OPENAI_API_KEY is not configured")
    payload = {
        "model": settings.OPENAI_MODEL,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "temperature": temperature,
    }
    headers = {"Authorization": f"Bearer {settings.OPENAI_API_KEY}"}
    r = await client.post(f"{settings.OPENAI_BASE_URL.rstrip('/')}/chat/completions", json=payload, headers=headers)
    r.raise_for_status()
    data = r.json() or {}
    if data.get("error"):
        raise GenerationFailed(f"provider error: {data['error']}")
    choices = data.get("choices") or []
    if not choices:
        return ""
    return ((choices[0].get("message") or {}).get("content") or "")


class NarrativeGenerator:
    """Text rewriter backed by the configured LLM provider.

    ``generate`` either returns non-empty text or raises ``GenerationFailed``;
    timeouts, HTTP errors and blank output all count as failures.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider or settings.LLM_PROVIDER
        self.timeout = timeout if timeout is not None else settings.GENERATION_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.GENERATION_MAX_RETRIES
        self.backoff = backoff if backoff is not None else settings.GENERATION_RETRY_BACKOFF_SECONDS
        self._transport = transport

    @property
    def model_name(self) -> str:
        return settings.OPENAI_MODEL if self.provider == "openai" else settings.OLLAMA_MODEL

    async def _once(self, system: str, user: str, temperature: float) -> str:
        call = _openai_generate if self.provider == "openai" else _ollama_generate
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await call(client, system, user, temperature)

    async def generate(self, system: str, user: str, *, temperature: float = 0.4) -> str:
        attempts = max(0, int(self.max_retries)) + 1
        last_exc: Optional[BaseException] = None
        for attempt in range(attempts):
            try:
                raw = await self._once(system, user, temperature)
            except GenerationFailed as e:
                last_exc = e
            except (httpx.HTTPError, ValueError) as e:
                # ValueError covers undecodable JSON bodies
                last_exc = e
            else:
                out = _sanitize_llm_text(raw)
                if out:
                    return out
                last_exc = GenerationFailed("empty response from generator")
            logger.warning(
                "Generator call failed (provider=%s attempt=%d/%d): %s",
                self.provider, attempt + 1, attempts, last_exc,
            )
            if attempt + 1 < attempts:
                await asyncio.sleep(self.backoff * (2 ** attempt))
        if isinstance(last_exc, GenerationFailed):
            raise last_exc
        raise GenerationFailed(f"{self.provider} request failed: {last_exc}") from last_exc


#----------chapter / intro prompts---------------

CHAPTER_SYSTEM_PROMPT = (
    "You are a careful memoir editor. You will receive one week of a person's diary entries, "
    "in the order they were written, separated by blank lines.\n"
    "Rewrite them as a single flowing chapter in the third person.\n"
    "Keep every event, feeling and detail that is present. Do not invent facts, people, places or dates. "
    "Do not add a title, a heading, or commentary. Return only the chapter text."
)

INTRO_SYSTEM_PROMPT = (
    "You are writing the prologue of a personal life-story book. "
    "Using only the profile facts you receive, write two or three warm paragraphs in the third person "
    "that introduce the author. Use the pronoun given. Do not invent facts. "
    "Return only the prologue text."
)


async def rewrite_week(generator: NarrativeGenerator, raw_text: str) -> str:
    return await generator.generate(CHAPTER_SYSTEM_PROMPT, raw_text, temperature=0.4)


def profile_brief(profile) -> str:
    fields = [
        ("Name", profile.name),
        ("Pronoun", profile.pronoun),
        ("Place", profile.place),
        ("Life phase", profile.life_phase),
        ("Daily life", profile.daily_life),
        ("Aspirations", profile.aspirations),
    ]
    return "\n".join(f"{label}: {(value or '').strip()}" for label, value in fields if (value or "").strip())


async def write_intro(generator: NarrativeGenerator, profile) -> str:
    return await generator.generate(INTRO_SYSTEM_PROMPT, profile_brief(profile), temperature=0.6)


def get_generator() -> NarrativeGenerator:
    return NarrativeGenerator()
