"""Tests for engine configuration."""

import pytest

from certengine.config import EngineConfig
from certengine.crypto import generate_keypair, private_key_hex


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.id_prefix == "DD"
        assert config.publish_endpoints == ()
        assert config.publish_timeout == 5.0
        assert config.store_path is None

    def test_from_env(self):
        seed = private_key_hex(generate_keypair().private_key)
        config = EngineConfig.from_env({
            "CERT_ID_PREFIX": "BD",
            "CERT_VERIFY_ORIGIN": "https://certs.example",
            "CERT_PUBLISH_ENDPOINTS": "https://a.example, https://b.example,,",
            "CERT_PUBLISH_TIMEOUT": "2.5",
            "CERT_RENDER_RETRIES": "0",
            "CERT_ISSUER_KEY": seed,
            "CERT_STORE_PATH": "/tmp/certs.json",
            "CERT_DEFAULT_COHORT": "Cohort 9",
        })
        assert config.id_prefix == "BD"
        assert config.verification_origin == "https://certs.example"
        assert config.publish_endpoints == ("https://a.example", "https://b.example")
        assert config.publish_timeout == 2.5
        assert config.render_retries == 0
        assert config.issuer_key_hex == seed
        assert config.store_path == "/tmp/certs.json"
        assert config.default_cohort == "Cohort 9"

    def test_empty_env(self):
        assert EngineConfig.from_env({}) == EngineConfig()

    @pytest.mark.parametrize("kwargs", [
        {"id_prefix": "dd"},
        {"id_prefix": "TOOLONG"},
        {"publish_timeout": 0},
        {"render_retries": -1},
        {"id_retries": 0},
        {"issuer_key_hex": "zz"},
    ])
    def test_rejects_bad_values(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)
