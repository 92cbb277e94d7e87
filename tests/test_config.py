from datetime import timedelta

from alterbft.config import Config, default_config


def test_default_config_timing_values():
    cfg = default_config()
    assert cfg.bootstrap_tick_interval == timedelta(milliseconds=100)
    assert cfg.timeout_small_delta == timedelta(seconds=1) / 5
    assert cfg.timeout_big_delta == timedelta(seconds=1)
    assert cfg.stats_publishing_interval == timedelta(0)


def test_default_config_window_and_sizes():
    cfg = default_config()
    assert cfg.past_instances_tracked == 16
    assert cfg.future_instances_tracked == 16
    assert cfg.max_active_epochs == 2000
    assert cfg.blockchain_size == 2000
    assert cfg.message_queues_size == 32
    assert cfg.chunks_number == 64


def test_default_config_flags_and_model():
    cfg = default_config()
    assert cfg.model == "sync"
    assert cfg.schedule_timeouts is True
    assert cfg.fast_alter_enabled is False
    assert cfg.verify_signatures is False
    assert cfg.byzantines is None
    assert cfg.byz_time == 0
    assert cfg.signature_generation_threads == 0
    assert cfg.signature_verification_threads == 0


def test_plain_config_holds_zero_values():
    cfg = Config()
    assert cfg.model == ""
    assert cfg.schedule_timeouts is False
    assert cfg.max_active_epochs == 0
    assert cfg.timeout_big_delta == timedelta(0)
    assert cfg.private_keys == []


def test_default_configs_are_independent():
    first = default_config()
    second = default_config()
    first.public_keys.append(b"key")
    first.model = "alter"
    assert second.public_keys == []
    assert second.model == "sync"