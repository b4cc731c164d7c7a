def test_defaults() -> None:
    from doctor.config import load_doctor_config

    cfg = load_doctor_config()
    assert cfg.retry_max_attempts == 3
    assert cfg.retry_initial_delay_seconds == 1.0
    assert cfg.log_tail_lines == 500
    assert cfg.previous_log_tail_lines == 50
    assert cfg.metrics_enabled is True


def test_env_overrides(monkeypatch) -> None:
    from doctor.config import load_doctor_config

    monkeypatch.setenv("DOCTOR_RETRY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DOCTOR_METRICS_ENABLED", "false")
    monkeypatch.setenv("DOCTOR_LOG_TAIL_LINES", "200")
    monkeypatch.setenv("DOCTOR_LOG_LEVEL", "debug")

    cfg = load_doctor_config()
    assert cfg.retry_max_attempts == 5
    assert cfg.metrics_enabled is False
    assert cfg.log_tail_lines == 200
    assert cfg.log_level == "DEBUG"


def test_bad_values_fall_back_or_clamp(monkeypatch) -> None:
    from doctor.config import load_doctor_config

    monkeypatch.setenv("DOCTOR_RETRY_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("DOCTOR_RETRY_INITIAL_DELAY_SECONDS", "soon")

    cfg = load_doctor_config()
    assert cfg.retry_max_attempts == 1
    assert cfg.retry_initial_delay_seconds == 1.0


def test_config_is_cached_until_cleared(monkeypatch) -> None:
    from doctor.config import load_doctor_config

    first = load_doctor_config()
    monkeypatch.setenv("DOCTOR_LOG_TAIL_LINES", "7")
    assert load_doctor_config() is first
    load_doctor_config.cache_clear()
    assert load_doctor_config().log_tail_lines == 7
