"""
HTTP client for the SandboxForge API.

Reads the generation stream as Server-Sent Events and yields one decoded
event dict per `data:` unit, stopping at `data: [DONE]`.
"""

import json
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from cli.config import CLIConfig

DONE_PAYLOAD = "[DONE]"


class APIError(Exception):
    """Non-success response from the server"""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error ({status_code}): {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        if detail:
            return detail if isinstance(detail, str) else json.dumps(detail)
    return response.text


def parse_sse_line(line: str) -> Optional[Any]:
    """
    Decode one SSE line.

    Returns the event dict for `data: {...}`, DONE_PAYLOAD for the end marker,
    and None for anything else (blank separators, comments, bad JSON).
    """
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if payload == DONE_PAYLOAD:
        return DONE_PAYLOAD
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return None


class SandboxForgeClient:
    """Thin async wrapper over the SandboxForge HTTP API"""

    def __init__(self, config: CLIConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport
        self.session_id: Optional[str] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.api_base_url,
            timeout=httpx.Timeout(self.config.timeout, read=None),
            transport=self.transport,
        )

    async def generate(
        self,
        prompt: str,
        sandbox_id: Optional[str] = None,
        follow_up: bool = False,
        model: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Stream the events of one generation; closing the iterator cancels it server-side"""
        request_data: Dict[str, Any] = {"prompt": prompt, "isFollowUp": follow_up}
        if sandbox_id:
            request_data["sandboxId"] = sandbox_id
        if model or self.config.model:
            request_data["model"] = model or self.config.model

        async with self._client() as client:
            async with client.stream("POST", "/generate", json=request_data) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise APIError(response.status_code, _error_message(response))

                self.session_id = response.headers.get("X-Session-ID")
                async for line in response.aiter_lines():
                    event = parse_sse_line(line)
                    if event is None:
                        continue
                    if event == DONE_PAYLOAD:
                        break
                    yield event

    async def cancel(self, session_id: str) -> bool:
        async with self._client() as client:
            response = await client.post(f"/generate/{session_id}/cancel")
            if response.status_code != 200:
                raise APIError(response.status_code, _error_message(response))
            return bool(response.json().get("cancelled"))

    async def delete_sandbox(self, sandbox_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                "/sandboxes/delete",
                json={"sandboxId": sandbox_id, "userId": user_id or self.config.user_id},
            )
            if response.status_code != 200:
                raise APIError(response.status_code, _error_message(response))
            return response.json()
