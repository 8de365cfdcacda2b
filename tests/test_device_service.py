"""
Unit tests for User-Agent based device detection.
"""

import pytest

from agentrag.schemas.strategy import Connectivity, DeviceConstraints, FormFactor, ProcessingPower
from agentrag.services.device_service import detect_device

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1"
ANDROID_PHONE = "Mozilla/5.0 (Linux; Android 13; SM-A136U) AppleWebKit/537.36 Chrome/118.0 Mobile Safari/537.36"
ANDROID_TABLET = "Mozilla/5.0 (Linux; Android 13; SM-X200) AppleWebKit/537.36 Chrome/118.0 Safari/537.36"
IPAD = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Safari/604.1"
DESKTOP = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/118.0 Safari/537.36"


@pytest.mark.parametrize(
    "user_agent, form_factor, power, memory_mb, connectivity",
    [
        (IPHONE, FormFactor.MOBILE, ProcessingPower.HIGH, 4096, Connectivity.CELLULAR),
        (ANDROID_PHONE, FormFactor.MOBILE, ProcessingPower.MEDIUM, 2048, Connectivity.CELLULAR),
        ("BlackBerry9700/5.0.0.351", FormFactor.MOBILE, ProcessingPower.LOW, 2048, Connectivity.CELLULAR),
        (ANDROID_TABLET, FormFactor.TABLET, ProcessingPower.HIGH, 4096, Connectivity.WIFI),
        (IPAD, FormFactor.TABLET, ProcessingPower.HIGH, 4096, Connectivity.WIFI),
        (DESKTOP, FormFactor.DESKTOP, ProcessingPower.HIGH, 8192, Connectivity.WIFI),
    ],
)
def test_detect_device_tiers(
    user_agent: str,
    form_factor: FormFactor,
    power: ProcessingPower,
    memory_mb: int,
    connectivity: Connectivity,
) -> None:
    device = detect_device(user_agent)
    assert device.form_factor == form_factor
    assert device.processing_power == power
    assert device.memory_mb == memory_mb
    assert device.connectivity == connectivity


def test_connection_type_overrides_default() -> None:
    assert detect_device(IPHONE, "wifi").connectivity == Connectivity.WIFI
    assert detect_device(DESKTOP, " Ethernet ").connectivity == Connectivity.ETHERNET


def test_unknown_connection_type_is_ignored() -> None:
    assert detect_device(IPHONE, "5g").connectivity == Connectivity.CELLULAR


def test_missing_user_agent_returns_defaults() -> None:
    assert detect_device(None) == DeviceConstraints()
    assert detect_device("", "offline") == DeviceConstraints(connectivity=Connectivity.OFFLINE)


def test_mobile_flags() -> None:
    assert detect_device(IPAD).is_mobile
    assert not detect_device(DESKTOP).is_mobile
    assert detect_device(ANDROID_PHONE).device_type == "mobile"
