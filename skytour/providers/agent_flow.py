# skytour/providers/agent_flow.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Upstream agent flow provider (Langflow)
--------------------------------------------------------
This module is the ONLY place that knows how to talk to Langflow.

Responsibilities:
- Build the run request (URL, x-api-key header, JSON payload).
- Run the blocking `requests` call off the event loop, bounded by a timeout.
- Find the generated text in the (untrusted, variable) response payload
  with an ordered list of small extractor functions.

Used by:
- core/resolver.py         -> tour guide flow (passenger questions)
- core/telemetry_source.py -> flight info flow (live telemetry as JSON text)

Every failure is raised as UpstreamUnavailable (or its subclass
MalformedUpstreamPayload) so callers can fall back locally.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

import requests

from skytour.core.config import Settings
from skytour.utils import Stopwatch

logger = logging.getLogger(__name__)


class UpstreamUnavailable(Exception):
    """Flow not configured, network fault, timeout or non-2xx status."""


class MalformedUpstreamPayload(UpstreamUnavailable):
    """A response arrived but no usable text could be extracted from it."""


# ---------------------------------------------------------------------------
# Response extraction
# ---------------------------------------------------------------------------

Extractor = Callable[[Mapping[str, Any]], Optional[str]]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _dig(node: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _from_messages(component: Mapping[str, Any]) -> Optional[str]:
    messages = component.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], Mapping):
        return _text(messages[0].get("message"))
    return None


def _from_results_message_text(component: Mapping[str, Any]) -> Optional[str]:
    return _text(_dig(component, "results", "message", "text"))


def _from_results_message_data_text(component: Mapping[str, Any]) -> Optional[str]:
    return _text(_dig(component, "results", "message", "data", "text"))


def _from_results_text(component: Mapping[str, Any]) -> Optional[str]:
    return _text(_dig(component, "results", "text"))


def _from_results_result(component: Mapping[str, Any]) -> Optional[str]:
    return _text(_dig(component, "results", "result"))


def _from_top_level_result(payload: Mapping[str, Any]) -> Optional[str]:
    return _text(payload.get("result"))


def _from_top_level_message(payload: Mapping[str, Any]) -> Optional[str]:
    return _text(payload.get("message"))


# Order matters: first match wins.
COMPONENT_EXTRACTORS: Tuple[Extractor, ...] = (
    _from_messages,
    _from_results_message_text,
    _from_results_message_data_text,
    _from_results_text,
    _from_results_result,
)

TOP_LEVEL_EXTRACTORS: Tuple[Extractor, ...] = (
    _from_top_level_result,
    _from_top_level_message,
)


def _iter_components(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Yield every `outputs[*].outputs[*]` component of a Langflow run result."""
    runs = payload.get("outputs")
    if not isinstance(runs, list):
        return
    for run in runs:
        components = run.get("outputs") if isinstance(run, Mapping) else None
        if not isinstance(components, list):
            continue
        for component in components:
            if isinstance(component, Mapping):
                yield component


def extract_reply_text(payload: Any) -> Optional[str]:
    """
    Return the generated text from a flow response, or None.

    A bare JSON string counts as the text itself.
    """
    if isinstance(payload, str):
        return _text(payload)
    if not isinstance(payload, Mapping):
        return None

    for component in _iter_components(payload):
        for extractor in COMPONENT_EXTRACTORS:
            found = extractor(component)
            if found is not None:
                return found

    for extractor in TOP_LEVEL_EXTRACTORS:
        found = extractor(payload)
        if found is not None:
            return found

    return None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AgentFlowClient:
    """
    Thin Langflow client shared by the whole process.

    Parameters
    ----------
    settings:
        Provides base URL, API key, flow ids and the timeout.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.langflow_base_url.rstrip("/")
        self.timeout_s = settings.upstream_timeout_s

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.langflow_api_key:
            headers["x-api-key"] = self.settings.langflow_api_key
        return headers

    def run_url(self, flow_id: str) -> str:
        return f"{self.base_url}/api/v1/run/{flow_id}"

    def _post(self, flow_id: str, payload: Dict[str, Any]) -> Any:
        """Blocking single attempt. Runs in a worker thread."""
        url = self.run_url(flow_id)
        try:
            resp = requests.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Langflow HTTP error: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            text_preview = (resp.text or "")[:200].replace("\n", " ")
            raise UpstreamUnavailable(f"Langflow HTTP {resp.status_code}: {text_preview}")

        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedUpstreamPayload("Langflow returned non-JSON response.") from exc

    async def run_flow(self, flow_id: str, payload: Dict[str, Any]) -> Any:
        """Run one flow without blocking the event loop."""
        if not flow_id:
            raise UpstreamUnavailable("Flow id is not configured.")

        with Stopwatch(
            f"Langflow run {flow_id}",
            logger,
            level=logging.DEBUG,
            slow_after=self.timeout_s / 2,
        ):
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self._post, flow_id, payload),
                    timeout=self.timeout_s,
                )
            except asyncio.TimeoutError as exc:
                raise UpstreamUnavailable(
                    f"Langflow did not answer within {self.timeout_s:.1f} s"
                ) from exc

    async def ask_tour_guide(
        self,
        input_value: str,
        session_id: str,
        flight_context: Dict[str, Any],
    ) -> str:
        """Send one passenger turn to the tour guide flow and return its text."""
        payload = {
            "input_value": input_value,
            "output_type": "chat",
            "input_type": "chat",
            "session_id": session_id,
            "tweaks": {"flight_context": flight_context},
        }
        data = await self.run_flow(self.settings.tour_guide_flow_id, payload)
        text = extract_reply_text(data)
        if text is None:
            raise MalformedUpstreamPayload("No reply text found in tour guide response.")
        return text

    async def fetch_flight_info(self) -> Dict[str, Any]:
        """
        Ask the flight info flow for live telemetry.

        The flow answers with a chat message whose text is a JSON object.
        """
        payload = {"input_value": "", "output_type": "chat", "input_type": "chat"}
        data = await self.run_flow(self.settings.flight_info_flow_id, payload)
        text = extract_reply_text(data)
        if text is None:
            raise MalformedUpstreamPayload("No message text in flight info response.")
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise MalformedUpstreamPayload("Flight info text is not JSON.") from exc
        if not isinstance(parsed, dict):
            raise MalformedUpstreamPayload("Flight info JSON is not an object.")
        return parsed
