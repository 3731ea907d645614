from typing import Optional

import httpx
from jobmatch.settings import settings


_headers = {"User-Agent": settings.USER_AGENT}


def get_client(
    base_url: str = "",
    timeout: Optional[float] = None,
    headers: Optional[dict] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    return httpx.Client(
        base_url=base_url,
        headers={**_headers, **(headers or {})},
        timeout=settings.REQUEST_TIMEOUT if timeout is None else timeout,
        follow_redirects=True,
        transport=transport,
    )
