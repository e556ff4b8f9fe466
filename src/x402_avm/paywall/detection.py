from typing import Any, Mapping

# Tokens found in the User-Agent of interactive browsers
BROWSER_AGENT_MARKERS = ("Mozilla/",)


def _header(headers: Mapping[str, Any], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            return str(value)
    return ""


def is_browser_request(headers: Mapping[str, Any]) -> bool:
    """
    Whether a request comes from a browser that should see the paywall page.

    Browsers ask for HTML and send a Mozilla-compatible User-Agent; wallets,
    SDKs and command line tools get the JSON challenge instead.

    Args:
        headers: Request headers, with keys in any case
    """
    if "text/html" not in _header(headers, "accept"):
        return False
    user_agent = _header(headers, "user-agent")
    return any(marker in user_agent for marker in BROWSER_AGENT_MARKERS)
