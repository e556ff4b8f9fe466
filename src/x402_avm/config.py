"""Application settings read from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from x402_avm.chains import DEFAULT_ALGOD_TOKEN, get_algod_url


class ConfigError(ValueError):
    """Raised when a setting is missing or invalid."""


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    facilitator_mnemonic: str
    facilitator_fee_payer: bool = True
    facilitator_url: Optional[str] = None
    algod_mainnet_url: str = get_algod_url("algorand")
    algod_testnet_url: str = get_algod_url("algorand-testnet")
    algod_token: str = DEFAULT_ALGOD_TOKEN
    upload_dir: str = "uploads"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    settlement_drain_timeout: float = 30.0

    @property
    def algod_urls(self) -> dict[str, str]:
        return {
            "algorand": self.algod_mainnet_url,
            "algorand-testnet": self.algod_testnet_url,
        }


def _parse_bool(name: str, value: str) -> bool:
    if value.lower() in _TRUE:
        return True
    if value.lower() in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_number(name: str, value: str, kind: type):
    try:
        number = kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a {kind.__name__}, got {value!r}")
    if number < 0:
        raise ConfigError(f"{name} must not be negative")
    return number


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Load settings from the environment.

    A .env file in the working directory is loaded first when reading from
    the process environment.

    Args:
        environ: Mapping to read instead of os.environ

    Raises:
        ConfigError: If FACILITATOR_MNEMONIC is missing or a value is invalid
    """
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ

    mnemonic = environ.get("FACILITATOR_MNEMONIC", "").strip()
    if not mnemonic:
        raise ConfigError("FACILITATOR_MNEMONIC is required")

    defaults = Settings(facilitator_mnemonic=mnemonic)
    log_level = environ.get("LOG_LEVEL", defaults.log_level).upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"LOG_LEVEL must be a logging level, got {log_level!r}")

    return Settings(
        facilitator_mnemonic=mnemonic,
        facilitator_fee_payer=_parse_bool(
            "FACILITATOR_FEE_PAYER", environ.get("FACILITATOR_FEE_PAYER", "true")
        ),
        facilitator_url=environ.get("FACILITATOR_URL") or None,
        algod_mainnet_url=environ.get("ALGOD_MAINNET_URL") or defaults.algod_mainnet_url,
        algod_testnet_url=environ.get("ALGOD_TESTNET_URL") or defaults.algod_testnet_url,
        algod_token=environ.get("ALGOD_TOKEN") or defaults.algod_token,
        upload_dir=environ.get("UPLOAD_DIR") or defaults.upload_dir,
        host=environ.get("HOST") or defaults.host,
        port=_parse_number("PORT", environ.get("PORT", str(defaults.port)), int),
        log_level=log_level,
        settlement_drain_timeout=_parse_number(
            "SETTLEMENT_DRAIN_TIMEOUT",
            environ.get("SETTLEMENT_DRAIN_TIMEOUT", str(defaults.settlement_drain_timeout)),
            float,
        ),
    )
