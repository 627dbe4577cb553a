# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import BridgeConfig
from constants import CONVAI_OUTPUT_FORMAT_DEFAULT, CONVAI_WS_URL_DEFAULT

ENV_VARS = (
    "ENV",
    "ELEVENLABS_AGENT_ID",
    "ELEVENLABS_API_KEY",
    "CONVAI_WS_URL",
    "CONVAI_OUTPUT_FORMAT",
    "INPUT_CHANNELS",
    "PLAYBACK_CHANNELS",
    "ENABLE_JSON_LOGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = BridgeConfig.load_from_env()

    assert config.env == "dev"
    assert config.agent_id is None
    assert config.api_key is None
    assert config.ws_url == CONVAI_WS_URL_DEFAULT
    assert config.output_format == CONVAI_OUTPUT_FORMAT_DEFAULT
    assert config.playback_channels == 1
    assert config.enable_json_logs is True


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ELEVENLABS_AGENT_ID", "agent_1")
    monkeypatch.setenv("ELEVENLABS_API_KEY", "key")
    monkeypatch.setenv("INPUT_CHANNELS", "2")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    config = BridgeConfig.load_from_env()

    assert config.agent_id == "agent_1"
    assert config.api_key == "key"
    assert config.input_channels == 2
    assert config.enable_json_logs is False


def test_non_integer_channels_raise(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PLAYBACK_CHANNELS", "stereo")
    with pytest.raises(ValueError):
        BridgeConfig.load_from_env()
