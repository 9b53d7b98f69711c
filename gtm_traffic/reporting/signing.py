"""EdgeGrid request signing for httpx.

The signature itself is computed by the ``edgegrid-python`` library, which
works on ``requests`` prepared requests. This adapter mirrors each outgoing
httpx request into one, lets EdgeGridAuth sign it, and copies the resulting
Authorization header back.
"""

from collections.abc import Generator

import httpx
import requests
from akamai.edgegrid import EdgeGridAuth

from gtm_traffic.config import Credentials

DEFAULT_MAX_BODY = 131072


class EdgeGridSigner(httpx.Auth):
    requires_request_body = True

    def __init__(self, credentials: Credentials, max_body: int = DEFAULT_MAX_BODY) -> None:
        self._auth = EdgeGridAuth(
            client_token=credentials.client_token,
            client_secret=credentials.client_secret,
            access_token=credentials.access_token,
            max_body=max_body,
        )

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        mirror = requests.Request(
            method=request.method,
            url=str(request.url),
            headers=dict(request.headers),
            data=request.content or None,
        ).prepare()
        _ = self._auth(mirror)
        request.headers["Authorization"] = mirror.headers["Authorization"]
        yield request
