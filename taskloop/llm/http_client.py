"""
HTTP transport shared by the vendor adapters, including server-sent event parsing.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import requests

from .base import LLMError, LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class ServerSentEvent:
    event: Optional[str]
    data: str

    def json(self) -> Any:
        return json.loads(self.data)


def iter_sse_events(lines: Iterable[Union[bytes, str]]) -> Iterator[ServerSentEvent]:
    """
    Group ``text/event-stream`` lines into events.

    Blank lines terminate an event, ``:`` lines are comments and multi-line
    ``data:`` fields are joined with newlines.
    Byte lines are decoded as UTF-8 regardless of the response charset.
    """
    event_name: Optional[str] = None
    data: List[str] = []
    for raw_line in lines:
        line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
        line = line.rstrip("\r")
        if not line:
            if data:
                yield ServerSentEvent(event=event_name, data="\n".join(data))
            event_name = None
            data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event_name = value
        elif name == "data":
            data.append(value)
    if data:
        yield ServerSentEvent(event=event_name, data="\n".join(data))


class HTTPProvider(LLMProvider):
    """
    Provider that talks to a vendor JSON endpoint with ``requests``.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key_env: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        default_headers: Optional[Dict[str, str]] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> None:
        super().__init__(model, temperature=temperature, max_output_tokens=max_output_tokens)
        self._api_key_env = api_key_env
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv(api_key_env)
        if not self.api_key:
            raise ValueError(
                f"API key is required. Provide via constructor or set the {api_key_env} environment variable."
            )
        self.timeout = timeout
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers(self.api_key))
        if default_headers:
            headers.update(default_headers)
        self.headers = headers

    @property
    def endpoint(self) -> str:
        raise NotImplementedError

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("POST %s (model=%s)", self.endpoint, payload.get("model"))
        response = requests.post(self.endpoint, json=payload, headers=self.headers, timeout=self.timeout)
        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise LLMError(f"Malformed response body: {response.text[:400]}") from exc

    def _post_stream(self, payload: Dict[str, Any]) -> Iterator[ServerSentEvent]:
        logger.debug("POST %s stream (model=%s)", self.endpoint, payload.get("model"))
        response = requests.post(
            self.endpoint,
            json=payload,
            headers=self.headers,
            timeout=self.timeout,
            stream=True,
        )
        try:
            self._raise_for_status(response)
            yield from iter_sse_events(response.iter_lines())
        finally:
            response.close()

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.status_code >= 400:
            raise LLMError(
                f"LLM request failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
