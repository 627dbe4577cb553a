"""
Input decoder health enumeration.

At most one recovery may be pending at a time; the reducer enforces that
by only starting a cooldown from HEALTHY.
"""

from __future__ import annotations

from enum import Enum


class DecoderHealth(str, Enum):
    """
    HEALTHY:
        Packets are decoded and classified.

    RECOVERING:
        Decoder torn down after an error; packets are dropped until the
        cooldown elapses and the participant stream is resubscribed.
    """

    HEALTHY = "HEALTHY"
    RECOVERING = "RECOVERING"
