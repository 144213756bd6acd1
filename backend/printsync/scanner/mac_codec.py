"""
MAC address normalization.

Live comparisons always go through normalize(). equivalent_keys() exists
only so the MAC -> IP cache can still find entries written by older
releases under inconsistent casing and separators.
"""

import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)

_NON_HEX = re.compile(r'[^0-9a-f]')
_CANONICAL = re.compile(r'^([0-9a-f]{2}:){5}[0-9a-f]{2}$')


def normalize(mac: Optional[str]) -> str:
    """
    Normalize any MAC format to lower-case colon-separated pairs.

    Args:
        mac: MAC address in any format (e.g., "AA-BB-CC-DD-EE-FF", "aabb.ccdd.eeff")

    Returns:
        "aa:bb:cc:dd:ee:ff", or the stripped hex digits unchanged when there
        are not exactly 12 of them
    """
    if not mac:
        return ''

    hex_only = _NON_HEX.sub('', mac.lower())
    if len(hex_only) != 12:
        logger.warning(f"Invalid MAC after normalization: {mac} -> {hex_only}")
        return hex_only

    return ':'.join(hex_only[i:i + 2] for i in range(0, 12, 2))


def is_canonical(mac: Optional[str]) -> bool:
    return bool(mac) and bool(_CANONICAL.match(mac))


def equivalent_keys(mac: Optional[str]) -> List[str]:
    """Case and separator variants of a MAC, in lookup order, without duplicates."""
    if not mac:
        return []

    variants = [
        mac.lower(),
        mac.upper(),
        re.sub(r'[:-]', ':', mac.lower()),
        re.sub(r'[:-]', ':', mac.upper()),
        re.sub(r'[:-]', '-', mac.lower()),
        re.sub(r'[:-]', '-', mac.upper()),
        re.sub(r'[:-]', '', mac.lower()),
    ]

    canonical = normalize(mac)
    if is_canonical(canonical):
        variants.extend([
            canonical.upper(),
            canonical.replace(':', '-'),
            canonical.replace(':', '-').upper(),
            canonical.replace(':', ''),
            canonical.replace(':', '').upper(),
        ])

    keys = []
    for variant in variants:
        if variant not in keys:
            keys.append(variant)
    return keys
