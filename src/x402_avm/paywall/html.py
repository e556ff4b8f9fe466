import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from x402_avm.chains import get_asset_decimals
from x402_avm.common import atomic_to_decimal, x402_VERSION
from x402_avm.networks import is_testnet
from x402_avm.types import PaymentRequirements, PaywallConfig

logger = logging.getLogger(__name__)

PAYWALL_FILE = Path(__file__).parent.parent / "static" / "paywall.html"

# Used for assets missing from the known asset table
FALLBACK_DECIMALS = 6


def load_paywall_html() -> str:
    """Read the bundled paywall page, or a minimal page if it is unavailable."""
    try:
        return PAYWALL_FILE.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not read paywall template {PAYWALL_FILE}: {e}")
        return create_simple_fallback_html()


def _display_amount(requirements: PaymentRequirements) -> float:
    try:
        decimals = get_asset_decimals(requirements.network, int(requirements.asset))
    except ValueError:
        decimals = FALLBACK_DECIMALS
    return float(atomic_to_decimal(requirements.max_amount_required, decimals))


def create_x402_config(
    error: str,
    payment_requirements: List[PaymentRequirements],
    current_url: str = "",
    paywall_config: Optional[PaywallConfig] = None,
) -> Dict[str, Any]:
    """Build the `window.x402` object read by the paywall page.

    The amount shown is the first requirement's price in whole asset units.
    Without requirements the page falls back to testnet and a zero amount.
    """
    first = payment_requirements[0] if payment_requirements else None
    ui = paywall_config or {}

    return {
        "amount": _display_amount(first) if first else 0.0,
        "paymentRequirements": [
            requirements.model_dump(by_alias=True, mode="json")
            for requirements in payment_requirements
        ],
        "testnet": is_testnet(first.network) if first else True,
        "currentUrl": current_url or (first.resource if first else ""),
        "error": error,
        "x402Version": x402_VERSION,
        "appName": ui.get("app_name", ""),
        "appLogo": ui.get("app_logo", ""),
    }


def inject_payment_data(
    html_content: str,
    error: str,
    payment_requirements: List[PaymentRequirements],
    current_url: str = "",
    paywall_config: Optional[PaywallConfig] = None,
) -> str:
    """Insert a `window.x402` script block right before the first `</head>`."""
    x402_config = create_x402_config(
        error, payment_requirements, current_url, paywall_config
    )

    # "<" is escaped so that no value can close the script element
    serialized = json.dumps(x402_config).replace("<", "\\u003c")
    debug_line = (
        "console.log('x402 payment requirements:', window.x402);"
        if x402_config["testnet"]
        else ""
    )
    script = f"<script>\n    window.x402 = {serialized};\n    {debug_line}\n  </script>\n"

    return html_content.replace("</head>", f"  {script}</head>", 1)


def get_paywall_html(
    error: str,
    payment_requirements: List[PaymentRequirements],
    current_url: str = "",
    paywall_config: Optional[PaywallConfig] = None,
    custom_html: Optional[str] = None,
) -> str:
    """
    Render the 402 page for a browser.

    Args:
        error: Message shown above the payment details
        payment_requirements: Requirements the browser wallet can pay
        current_url: URL reloaded with the X-PAYMENT header once paid
        paywall_config: App name and logo shown on the page
        custom_html: Template used instead of the bundled paywall page

    Returns:
        The page with the payment data injected
    """
    return inject_payment_data(
        custom_html or load_paywall_html(),
        error,
        payment_requirements,
        current_url,
        paywall_config,
    )


def create_simple_fallback_html() -> str:
    """Bare page listing the requirements as JSON."""
    return """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>402 Payment Required</title>
</head>
<body style="font-family: sans-serif; max-width: 40rem; margin: 3rem auto;">
  <h1>402 Payment Required</h1>
  <p>Open this page with an Algorand wallet to pay for the content.</p>
  <pre id="x402-requirements" style="white-space: pre-wrap;"></pre>
  <script>
    if (window.x402) {
      document.getElementById("x402-requirements").textContent =
        JSON.stringify(window.x402.paymentRequirements, null, 2);
    }
  </script>
</body>
</html>
"""
