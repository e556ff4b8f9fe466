from .html import (
    load_paywall_html,
    inject_payment_data,
    create_simple_fallback_html,
    get_paywall_html,
    create_x402_config,
)
from .detection import is_browser_request
from .responses import create_html_response, create_json_response

__all__ = [
    "load_paywall_html",
    "inject_payment_data",
    "create_simple_fallback_html",
    "get_paywall_html",
    "create_x402_config",
    "is_browser_request",
    "create_html_response",
    "create_json_response",
]
