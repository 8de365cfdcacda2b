"""
Device classification: infer DeviceConstraints from a User-Agent string.

Rough tiers only: form factor from UA patterns, processing power and memory from
the device family, connectivity from the caller when known (else cellular for
phones, wifi otherwise).
"""

import logging
import re

from agentrag.schemas.strategy import Connectivity, DeviceConstraints, FormFactor, ProcessingPower

logger = logging.getLogger(__name__)

_MOBILE_RE = re.compile(r"android|webos|iphone|ipod|blackberry|iemobile|opera mini", re.IGNORECASE)
_TABLET_RE = re.compile(r"ipad|android(?!.*mobile)|tablet", re.IGNORECASE)
_HIGH_END_MOBILE_RE = re.compile(r"iphone|samsung galaxy|pixel|oneplus", re.IGNORECASE)


def detect_device(user_agent: str | None, connection_type: str | None = None) -> DeviceConstraints:
    ua = (user_agent or "").strip()
    connectivity = _parse_connectivity(connection_type)
    if not ua:
        return DeviceConstraints(connectivity=connectivity or Connectivity.UNKNOWN)

    if _TABLET_RE.search(ua):
        form_factor = FormFactor.TABLET
        power = ProcessingPower.HIGH
        memory_mb = 4096
    elif _MOBILE_RE.search(ua):
        form_factor = FormFactor.MOBILE
        if _HIGH_END_MOBILE_RE.search(ua):
            power = ProcessingPower.HIGH
        elif "android" in ua.lower():
            power = ProcessingPower.MEDIUM
        else:
            power = ProcessingPower.LOW
        memory_mb = 4096 if power == ProcessingPower.HIGH else 2048
    else:
        form_factor = FormFactor.DESKTOP
        power = ProcessingPower.HIGH
        memory_mb = 8192

    if connectivity is None:
        connectivity = Connectivity.CELLULAR if form_factor == FormFactor.MOBILE else Connectivity.WIFI
    device = DeviceConstraints(
        processing_power=power,
        memory_mb=memory_mb,
        connectivity=connectivity,
        form_factor=form_factor,
    )
    logger.debug("[device:detect] ua=%r -> %s/%s/%s", ua[:80], form_factor.value, power.value, connectivity.value)
    return device


def _parse_connectivity(value: str | None) -> Connectivity | None:
    if not value:
        return None
    try:
        return Connectivity(value.strip().lower())
    except ValueError:
        logger.info("[device:detect] unknown connection type %r", value)
        return None
