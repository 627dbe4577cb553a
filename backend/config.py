"""
Bridge configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No bridging logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    CONVAI_OUTPUT_FORMAT_DEFAULT,
    CONVAI_WS_URL_DEFAULT,
    PARTICIPANT_CHANNELS_DEFAULT,
    PLAYBACK_CHANNELS_DEFAULT,
)


@dataclass(frozen=True)
class BridgeConfig:
    """
    Immutable bridge configuration.

    Constructed once at process startup by whatever hosts the bridge and
    passed to BridgeSession.from_config().
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str

    # ------------------------------------------------------------------
    # Conversational AI
    # ------------------------------------------------------------------

    agent_id: str | None
    api_key: str | None
    ws_url: str
    output_format: str

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    input_channels: int
    playback_channels: int

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> BridgeConfig:
        """
        Load configuration from environment variables.

        Missing credentials are NOT an error here; BridgeSession rejects
        them at construction time.

        Raises:
            ValueError if a numeric variable is not an integer.
        """
        return BridgeConfig(
            env=os.environ.get("ENV", "dev"),

            agent_id=os.environ.get("ELEVENLABS_AGENT_ID"),
            api_key=os.environ.get("ELEVENLABS_API_KEY"),
            ws_url=os.environ.get("CONVAI_WS_URL", CONVAI_WS_URL_DEFAULT),
            output_format=os.environ.get("CONVAI_OUTPUT_FORMAT", CONVAI_OUTPUT_FORMAT_DEFAULT),

            input_channels=int(os.environ.get("INPUT_CHANNELS", str(PARTICIPANT_CHANNELS_DEFAULT))),
            playback_channels=int(os.environ.get("PLAYBACK_CHANNELS", str(PLAYBACK_CHANNELS_DEFAULT))),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
