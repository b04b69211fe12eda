from hireveno.config import Settings

def test_defaults_load_without_optional_secrets(monkeypatch):
    monkeypatch.delenv("REDIS_PASSWORD", raising=False)
    settings = Settings(_env_file=None)
    assert settings.redis_password is None
    assert settings.tutor_payout_ratio == 0.70
    assert settings.min_withdrawal_amount == 50000

def test_redis_password_from_environment(monkeypatch):
    monkeypatch.setenv("REDIS_PASSWORD", "s3cret")
    assert Settings(_env_file=None).redis_password == "s3cret"
