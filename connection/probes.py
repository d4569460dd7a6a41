"""
Probe requests used to check a server URL and API key.

The remote API has no dedicated "check auth" endpoint, so credential validity
is inferred from how the server answers one of these requests.
"""

from dataclasses import dataclass
from http import HTTPStatus
from typing import Dict, Optional

from config import PROBE_ENDPOINTS


@dataclass(frozen=True)
class ProbeStrategy:
    """One outbound request and how its status is read"""
    name: str
    method: str
    path: str
    body: Optional[str] = None
    accept_bad_request: bool = False

    def url_for(self, server_url: str) -> str:
        return f"{server_url.rstrip('/')}{self.path}"

    def headers_for(self, api_key: str) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {api_key}"}
        if self.body is not None:
            headers["Content-Type"] = "application/json"
        return headers

    def accepts(self, status: int) -> bool:
        """
        Whether a status proves the credential was accepted.

        A 400 means the server authenticated the request and then rejected
        the deliberately incomplete body.
        """
        if 200 <= status < 300:
            return True
        return self.accept_bad_request and status == HTTPStatus.BAD_REQUEST


def _build(name: str) -> ProbeStrategy:
    endpoint = PROBE_ENDPOINTS[name]
    return ProbeStrategy(
        name=name,
        method=endpoint["method"],
        path=endpoint["path"],
        body=endpoint.get("body"),
        accept_bad_request=endpoint.get("accept_bad_request", False),
    )


# POST /api/generate-message with "{}"; 2xx or 400 means the key works
GENERATE_MESSAGE_PROBE = _build("generate_message")

# GET /api/db/conversations; only 2xx means the key works
CONVERSATIONS_PROBE = _build("conversations")

PROBES: Dict[str, ProbeStrategy] = {
    GENERATE_MESSAGE_PROBE.name: GENERATE_MESSAGE_PROBE,
    CONVERSATIONS_PROBE.name: CONVERSATIONS_PROBE,
}

DEFAULT_PROBE = GENERATE_MESSAGE_PROBE


def get_probe(name: Optional[str]) -> ProbeStrategy:
    """
    Look up a probe by name.

    Raises:
        KeyError: If no probe has that name
    """
    if not name:
        return DEFAULT_PROBE
    try:
        return PROBES[name]
    except KeyError:
        raise KeyError(
            f"Unknown probe '{name}'. Available probes: {', '.join(sorted(PROBES))}"
        ) from None
