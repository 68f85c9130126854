#!/usr/bin/env python3
"""
Vision Client - judge and narration transport

Talks to an OpenAI-compatible chat completions endpoint for vision critique,
reference analysis, prompt planning, and streamed chat.
"""

import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from agentic_refine.core.constants import (
    API_DEFAULT_BASE_URL,
    API_DEFAULT_TIMEOUT,
    API_KEY_ENV,
    API_RETRY_ATTEMPTS,
    API_RETRY_DELAY,
    DEFAULT_VERIFICATION_MODEL,
    RATE_LIMIT_MAX_WAIT,
    THINK_CLOSE,
    THINK_OPEN,
)
from agentic_refine.core.media import artifact_to_url
from agentic_refine.core.models import Artifact, ArtifactKind, Narration
from agentic_refine.core.streaming import ReasoningStreamDecoder, StreamEvent, iter_sse_fragments
from agentic_refine.errors import RateLimitError, TransportError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 500, 502, 503, 504}


class VisionClient:
    """Client for vision and text models behind a chat completions API."""

    def __init__(self, model: str = DEFAULT_VERIFICATION_MODEL, base_url: str = None,
                 api_key: str = None, timeout: int = API_DEFAULT_TIMEOUT,
                 retry_attempts: int = API_RETRY_ATTEMPTS, retry_delay: float = API_RETRY_DELAY,
                 max_concurrent: int = 1, temperature: float = 0.2):
        """
        Initialize the client.

        Args:
            model: Default model when a call does not name one
            base_url: API root, e.g. https://llm.chutes.ai/v1
            api_key: Bearer token (falls back to the REFINE_API_KEY env var)
            timeout: Per-request timeout in seconds
            retry_attempts: Extra attempts after a failed request
            retry_delay: Seconds between attempts
            max_concurrent: Maximum requests in flight across threads
        """
        self.model = model
        self.base_url = (base_url or API_DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key or os.environ.get(API_KEY_ENV)
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.temperature = temperature

        self._last_request_metadata: Optional[Dict] = None
        self._request_semaphore = threading.Semaphore(max(1, int(max_concurrent)))

    def get_last_request_metadata(self) -> Optional[Dict]:
        """Get metadata from the last request (model, attempts, success)."""
        return self._last_request_metadata

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _artifact_part(artifact: Artifact) -> Dict:
        url = artifact_to_url(artifact)
        if artifact.kind == ArtifactKind.VIDEO:
            return {"type": "video_url", "video_url": {"url": url}}
        return {"type": "image_url", "image_url": {"url": url}}

    def _user_message(self, text: str, artifacts: Optional[Sequence[Artifact]] = None) -> Dict:
        if not artifacts:
            return {"role": "user", "content": text}
        # Vision models expect the media first, then the text.
        content: List[Dict] = [self._artifact_part(a) for a in artifacts]
        content.append({"type": "text", "text": text})
        return {"role": "user", "content": content}

    def _payload(self, messages: List[Dict], model: Optional[str], stream: bool = False,
                 max_tokens: int = 1024) -> Dict:
        return {
            "model": model or self.model,
            "messages": messages,
            "stream": stream,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _post(self, payload: Dict, stream: bool = False) -> requests.Response:
        """POST with retries. Raises TransportError/RateLimitError when exhausted."""
        request_metadata = {"model": payload.get("model"), "attempts": 0}
        api_url = f"{self.base_url}/chat/completions"

        self._request_semaphore.acquire()
        try:
            last_error = None
            for attempt in range(self.retry_attempts + 1):
                request_metadata["attempts"] = attempt + 1
                try:
                    logger.debug(f"POST {api_url} model={payload.get('model')} "
                                 f"(attempt {attempt + 1}/{self.retry_attempts + 1})")
                    response = requests.post(api_url, json=payload, headers=self._headers(),
                                             timeout=self.timeout, stream=stream)
                    if response.status_code == 429:
                        wait_seconds, reset_time = self._rate_limit_wait(response)
                        if wait_seconds is not None and wait_seconds < RATE_LIMIT_MAX_WAIT \
                                and attempt < self.retry_attempts:
                            logger.warning(f"  Rate limited; retrying in {wait_seconds:.0f}s...")
                            time.sleep(wait_seconds)
                            continue
                        request_metadata.update(success=False, error="rate limited")
                        self._last_request_metadata = request_metadata
                        raise RateLimitError(
                            f"Rate limit exceeded for {payload.get('model')}. Reset time: {reset_time}",
                            reset_time=reset_time,
                        )
                    if response.status_code in RETRYABLE_STATUS and attempt < self.retry_attempts:
                        last_error = f"HTTP {response.status_code}"
                        logger.warning(f"  {last_error}; retrying in {self.retry_delay}s...")
                        time.sleep(self.retry_delay)
                        continue
                    if response.status_code >= 400:
                        logger.error(f"  HTTP {response.status_code} Error: {response.text[:500]}")
                    response.raise_for_status()
                    request_metadata["success"] = True
                    self._last_request_metadata = request_metadata
                    return response
                except requests.exceptions.Timeout:
                    last_error = f"Timeout after {self.timeout}s"
                except requests.exceptions.ConnectionError as e:
                    last_error = f"Connection error: {e}"
                except requests.exceptions.HTTPError as e:
                    last_error = str(e)
                    break
                logger.warning(f"  Request error (attempt {attempt + 1}): {last_error}")
                if attempt < self.retry_attempts:
                    time.sleep(self.retry_delay)

            request_metadata.update(success=False, error=last_error)
            self._last_request_metadata = request_metadata
            raise TransportError(f"Request failed after {request_metadata['attempts']} attempt(s): {last_error}")
        finally:
            self._request_semaphore.release()

    @staticmethod
    def _rate_limit_wait(response: requests.Response) -> Tuple[Optional[float], Optional[int]]:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after), None
            except ValueError:
                pass
        reset_header = response.headers.get("X-RateLimit-Reset")
        if reset_header:
            try:
                reset_time = int(reset_header) / 1000  # milliseconds
                return max(0.0, reset_time - time.time()) + 1, int(reset_time)
            except (TypeError, ValueError):
                pass
        return None, None

    def _complete(self, messages: List[Dict], model: Optional[str]) -> Narration:
        response = self._post(self._payload(messages, model))
        try:
            result = response.json()
        except ValueError as e:
            raise TransportError(f"Response was not JSON: {response.text[:200]}") from e
        if not isinstance(result, dict):
            raise TransportError(f"Unexpected response shape: {type(result).__name__}")

        choices = result.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else {}
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            message = {}
        text = message.get("content") or ""
        if isinstance(text, list):  # some providers return content parts
            text = "".join(part.get("text", "") for part in text if isinstance(part, dict))
        reasoning = message.get("reasoning_content") or message.get("reasoning") or ""
        logger.debug(f"  Response received ({len(text)} chars, {len(reasoning)} reasoning chars)")
        return Narration(text=text, reasoning=reasoning)

    # ------------------------------------------------------------------
    # Service calls
    # ------------------------------------------------------------------
    def judge(self, artifacts: Sequence[Artifact], prompt: str, model: Optional[str] = None) -> str:
        """Send artifacts plus a judging prompt; return the raw answer text."""
        messages = [self._user_message(prompt, artifacts)]
        narration = self._complete(messages, model)
        # Reasoning models sometimes leave the answer channel empty.
        return narration.text or narration.reasoning

    def narrate(self, system_instruction: str, user_context: str,
                artifacts: Optional[Sequence[Artifact]] = None,
                model: Optional[str] = None) -> Narration:
        """Single-turn generation. Reasoning and answer are returned separately."""
        messages = [
            {"role": "system", "content": system_instruction},
            self._user_message(user_context, artifacts),
        ]
        return self._complete(messages, model)

    def stream_chat(self, messages: List[Dict[str, Any]], model: Optional[str] = None,
                    on_chunk: Optional[Callable[[StreamEvent], None]] = None,
                    max_tokens: int = 1024) -> Narration:
        """Stream a chat completion, separating reasoning from the answer."""
        response = self._post(self._payload(messages, model, stream=True, max_tokens=max_tokens), stream=True)
        decoder = ReasoningStreamDecoder(THINK_OPEN, THINK_CLOSE)
        try:
            for fragment in iter_sse_fragments(response.iter_lines()):
                for event in decoder.feed(fragment):
                    if on_chunk:
                        on_chunk(event)
            for event in decoder.flush():
                if on_chunk:
                    on_chunk(event)
        finally:
            response.close()
        return Narration(text=decoder.final, reasoning=decoder.reasoning)

    def test_connection(self) -> bool:
        """Test if the API is reachable with the configured credentials."""
        try:
            response = requests.get(f"{self.base_url}/models", headers=self._headers(), timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False
