"""Sets up the authenticated httpx client for Jira."""

import httpx

from jira_flow_sync.configuration.exceptions import NotConfigured

DEFAULT_TIMEOUT_SECONDS = 30.0


def get_jira_client(
    host: str | None,
    username: str | None,
    password: str | None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    verify_ssl: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Returns an httpx client authenticated against Jira with HTTP Basic auth.

    The password may be an account password or a personal access token.
    Responses are requested as JSON but are decoded by the adapter, so no
    encoding is negotiated here.
    """
    if not (host and username and password):
        raise NotConfigured("Jira connection requires a host, a username and a password or token.")
    return httpx.AsyncClient(
        base_url=host.rstrip("/"),
        auth=httpx.BasicAuth(username, password),
        headers={"Accept": "application/json", "Content-Type": "application/json"},
        timeout=httpx.Timeout(timeout),
        verify=verify_ssl,
        transport=transport,
    )
