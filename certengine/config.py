"""Engine configuration, read from ``CERT_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .crypto import keypair_from_hex
from .ids import DEFAULT_PREFIX, PREFIX_PATTERN


@dataclass
class EngineConfig:
    """
    Configuration for the certificate engine.

    An empty ``publish_endpoints`` disables publication. Without
    ``issuer_key_hex`` a fresh issuer key is generated per process, so
    announcements from different runs carry different public keys.
    """
    id_prefix: str = DEFAULT_PREFIX
    verification_origin: str = "http://localhost:8000"

    # Publication
    publish_endpoints: tuple[str, ...] = field(default_factory=tuple)
    publish_timeout: float = 5.0
    issuer_name: str = "Dada Digital Certificates"
    issuer_key_hex: Optional[str] = None

    # Issuance
    render_retries: int = 1
    id_retries: int = 5
    default_cohort: str = ""
    default_course: str = "Bitcoin & Blockchain Fundamentals"

    # Storage (None = in-memory)
    store_path: Optional[str] = None

    def __post_init__(self) -> None:
        if not PREFIX_PATTERN.match(self.id_prefix):
            raise ValueError(f"id_prefix must be 2-4 upper-case letters, got {self.id_prefix!r}")
        if self.publish_timeout <= 0:
            raise ValueError("publish_timeout must be positive")
        if self.render_retries < 0 or self.id_retries < 1:
            raise ValueError("render_retries must be >= 0 and id_retries >= 1")
        self.publish_endpoints = tuple(self.publish_endpoints)
        if self.issuer_key_hex:
            keypair_from_hex(self.issuer_key_hex)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        if "CERT_ID_PREFIX" in env:
            kwargs["id_prefix"] = env["CERT_ID_PREFIX"].strip()
        if "CERT_VERIFY_ORIGIN" in env:
            kwargs["verification_origin"] = env["CERT_VERIFY_ORIGIN"].strip()
        if "CERT_PUBLISH_ENDPOINTS" in env:
            kwargs["publish_endpoints"] = tuple(
                ep.strip() for ep in env["CERT_PUBLISH_ENDPOINTS"].split(",") if ep.strip()
            )
        if "CERT_PUBLISH_TIMEOUT" in env:
            kwargs["publish_timeout"] = float(env["CERT_PUBLISH_TIMEOUT"])
        if "CERT_RENDER_RETRIES" in env:
            kwargs["render_retries"] = int(env["CERT_RENDER_RETRIES"])
        if "CERT_ID_RETRIES" in env:
            kwargs["id_retries"] = int(env["CERT_ID_RETRIES"])
        if "CERT_ISSUER_NAME" in env:
            kwargs["issuer_name"] = env["CERT_ISSUER_NAME"]
        if env.get("CERT_ISSUER_KEY"):
            kwargs["issuer_key_hex"] = env["CERT_ISSUER_KEY"].strip()
        if env.get("CERT_STORE_PATH"):
            kwargs["store_path"] = env["CERT_STORE_PATH"]
        if "CERT_DEFAULT_COHORT" in env:
            kwargs["default_cohort"] = env["CERT_DEFAULT_COHORT"]
        if "CERT_DEFAULT_COURSE" in env:
            kwargs["default_course"] = env["CERT_DEFAULT_COURSE"]
        return cls(**kwargs)
