from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

import requests

from qcr.core.errors import AnalysisInputError, ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"


def _load_prompt(name: str) -> str:
    here = Path(__file__).resolve().parents[1] / "prompts"
    return (here / name).read_text(encoding="utf-8")


SYSTEM_PROMPT = _load_prompt("system.txt")
REVIEW_PROMPT = _load_prompt("review.txt")


def chunk_text(text: str, max_chars: int = 12000) -> list[str]:
    """
    Split on line boundaries so no chunk exceeds max_chars, unless a single
    line is longer than that on its own.
    """
    if len(text) <= max_chars:
        return [text]

    chunks: list[str] = []
    buf: list[str] = []
    size = 0
    for ln in text.splitlines(keepends=True):
        if buf and size + len(ln) > max_chars:
            chunks.append("".join(buf))
            buf, size = [], 0
        buf.append(ln)
        size += len(ln)
    if buf:
        chunks.append("".join(buf))
    return chunks


class AIReviewClient:
    """
    Free-text reviewer backed by an OpenAI-compatible chat-completions API.

    The credential is required up front: constructing the client without one
    raises ConfigurationError, so a batch fails once instead of per file.

    requests.Session is not thread-safe, so unless a session is passed in,
    each worker thread gets its own. A passed-in session is used as is.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = 120.0,
        max_chunk_chars: int = 12000,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or not api_key.strip():
            raise ConfigurationError(
                "AI API key not configured. Set QCR_API_KEY or OPENAI_API_KEY."
            )
        self._api_key = api_key.strip()
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_chunk_chars = max_chunk_chars
        self._shared_session = session
        self._local = threading.local()
        self._owned: list[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            self._local.session = s
            with self._lock:
                self._owned.append(s)
        return s

    @classmethod
    def from_settings(cls, settings, **overrides) -> "AIReviewClient":
        kwargs = dict(
            base_url=settings.base_url,
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout,
            max_chunk_chars=settings.max_chunk_chars,
        )
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(settings.api_key, **kwargs)

    def __enter__(self) -> "AIReviewClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
        with self._lock:
            owned, self._owned = self._owned, []
        for s in owned:
            s.close()
        self._local = threading.local()

    def complete(self, prompt: str, *, system: str = SYSTEM_PROMPT) -> str:
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            r = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise ExternalServiceError(f"AI review timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise ExternalServiceError(
                f"Network error. Please check your internet connection ({e})"
            ) from e

        if r.status_code in (401, 403):
            raise ExternalServiceError(
                "Invalid AI API key. Please check QCR_API_KEY / OPENAI_API_KEY",
                status_code=r.status_code,
            )
        if r.status_code == 429:
            raise ExternalServiceError("AI service rate limit reached", status_code=429)
        if not r.ok:
            raise ExternalServiceError(
                f"AI service error {r.status_code} for {url}: {r.text[:500]}",
                status_code=r.status_code,
            )

        try:
            content = r.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"AI service returned a malformed response: {e}") from e

        if content is None:
            return ""
        if not isinstance(content, str):
            raise ExternalServiceError(
                f"AI service returned a malformed response: content is {type(content).__name__}, not text"
            )
        return content

    def review_text(self, content: str, language: str = "unknown", *, path: str = "<input>") -> str:
        if not content.strip():
            raise AnalysisInputError("Code cannot be empty")

        chunks = chunk_text(content, max_chars=self.max_chunk_chars)
        logger.debug("AI review of %s: %d chars, %d chunk(s), model=%s", path, len(content), len(chunks), self.model)

        parts = []
        for idx, chunk in enumerate(chunks, start=1):
            chunk_path = path if len(chunks) == 1 else f"{path} (chunk {idx}/{len(chunks)})"
            prompt = REVIEW_PROMPT.format(language=language, path=chunk_path, code=chunk)
            text = self.complete(prompt).strip()
            if text:
                parts.append(text)

        return "\n\n".join(parts)
