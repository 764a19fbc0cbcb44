import logging
import os
from dataclasses import dataclass

FAIL_MODES = ("open", "closed")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    identity_url: str = "http://127.0.0.1:54321"
    identity_api_key: str = ""
    identity_timeout: float = 5.0
    session_cookie: str = "sb-access-token"
    gate_fail_mode: str = "open"
    gate_redirect: str = "/dashboard"
    qr_max_width: int = 1000
    log_level: str = "INFO"
    port: int = 5000
    secret_key: str = "dev"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.
        Unset variables fall back to the dataclass defaults.
        """
        fail_mode = os.getenv("GATE_FAIL_MODE", cls.gate_fail_mode).strip().lower()
        if fail_mode not in FAIL_MODES:
            raise ValueError(f"GATE_FAIL_MODE must be one of {FAIL_MODES}, got {fail_mode!r}")

        timeout = float(os.getenv("IDENTITY_TIMEOUT", str(cls.identity_timeout)))
        if timeout <= 0:
            raise ValueError("IDENTITY_TIMEOUT must be positive")

        max_width = int(os.getenv("QR_MAX_WIDTH", str(cls.qr_max_width)))
        if max_width <= 0:
            raise ValueError("QR_MAX_WIDTH must be positive")

        return cls(
            identity_url=os.getenv("IDENTITY_URL", cls.identity_url).rstrip("/"),
            identity_api_key=os.getenv("IDENTITY_API_KEY", cls.identity_api_key),
            identity_timeout=timeout,
            session_cookie=os.getenv("SESSION_COOKIE", cls.session_cookie),
            gate_fail_mode=fail_mode,
            gate_redirect=os.getenv("GATE_REDIRECT", cls.gate_redirect),
            qr_max_width=max_width,
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            port=int(os.getenv("PORT", str(cls.port))),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
