import pytest
from pydantic import ValidationError

from gramperks_api.core.settings import Settings


def test_vendor_secret_rounds_follow_bcrypt_bounds(monkeypatch) -> None:
    monkeypatch.setenv("VENDOR_SECRET_BCRYPT_ROUNDS", "10")
    assert Settings().vendor_secret_bcrypt_rounds == 10

    monkeypatch.setenv("VENDOR_SECRET_BCRYPT_ROUNDS", "3")
    with pytest.raises(ValidationError):
        Settings()


def test_settings_only_declare_keys_the_service_reads() -> None:
    fields = set(Settings.model_fields)
    assert "vendor_secret_bcrypt_rounds" in fields
    assert {"secret_key", "api_base_url", "vendor_secret_hash_iterations"}.isdisjoint(fields)
