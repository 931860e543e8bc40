"""Deterministic, non-cryptographic hashes used for naming and coloring."""

from github_asana_relay.utils.constants import ASANA_ENUM_COLORS


def rolling_hash_32(value: str) -> int:
    """Return the signed 32-bit ``h * 31 + c`` rolling hash of a string."""
    hash_value = 0
    for char in value:
        hash_value = ((hash_value << 5) - hash_value + ord(char)) & 0xFFFFFFFF
    if hash_value & 0x80000000:
        hash_value -= 0x100000000
    return hash_value


def color_for_option(value: str) -> str:
    """Pick a stable Asana enum color for an option name."""
    return ASANA_ENUM_COLORS[abs(rolling_hash_32(value)) % len(ASANA_ENUM_COLORS)]
