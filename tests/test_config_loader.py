import pytest

from engine.config.loader import ChartConfig, ConfigLoader


def write_config(tmp_path, text, name="chart"):
    (tmp_path / f"{name}.yaml").write_text(text)
    return ConfigLoader(tmp_path)


def test_missing_file_uses_defaults(tmp_path):
    config = ConfigLoader(tmp_path).load()

    assert config == ChartConfig()
    assert config.symbol == "BTC/USD"
    assert config.interval_seconds == 60
    assert config.output_size == 5000
    assert not config.nats.enabled


def test_load_yaml(tmp_path):
    loader = write_config(tmp_path, """
symbol: ETH/USD
interval: 5min
output_size: 500
reject_stale_ticks: true
feed:
  heartbeat_seconds: 5
""")

    config = loader.load()

    assert config.symbol == "ETH/USD"
    assert config.interval_seconds == 300
    assert config.reject_stale_ticks
    assert config.feed_config().heartbeat_seconds == 5.0
    assert config.historical_config().timeout is None


def test_env_overrides_win(tmp_path, monkeypatch):
    loader = write_config(tmp_path, "symbol: ETH/USD\ninterval: 5min\n")
    monkeypatch.setenv("CHART_SYMBOL", "BTC/EUR")
    monkeypatch.setenv("CHART_INTERVAL", "1h")
    monkeypatch.setenv("TWELVEDATA_API_KEY", "secret")
    monkeypatch.setenv("NATS_SERVERS", "nats://a:4222, nats://b:4222")

    config = loader.load()

    assert config.symbol == "BTC/EUR"
    assert config.interval == "1h"
    assert config.historical.api_key == "secret"
    assert config.feed_config().connect_url.endswith("apikey=secret")
    assert config.nats.enabled
    assert config.nats_config().servers == ["nats://a:4222", "nats://b:4222"]


@pytest.mark.parametrize(
    "text",
    [
        "interval: 7min\n",
        "output_size: 0\n",
        "output_size: 5001\n",
        "symbol: '  '\n",
        "feed:\n  heartbeat_seconds: 0\n",
    ],
)
def test_invalid_values_raise(tmp_path, text):
    with pytest.raises(ValueError, match="Invalid config"):
        write_config(tmp_path, text).load()


def test_invalid_yaml_raises(tmp_path):
    with pytest.raises(ValueError, match="Failed to load"):
        write_config(tmp_path, "symbol: [unclosed\n").load()


def test_non_mapping_yaml_raises(tmp_path):
    with pytest.raises(ValueError, match="expected a mapping"):
        write_config(tmp_path, "- just\n- a list\n").load()
