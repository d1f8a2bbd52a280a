"""Reader for ``.pfi`` option files (``key = value`` lines)."""

from __future__ import annotations

import re
from pathlib import Path

from ..exceptions import ConfigurationError

# Option keys understood by FDASettings.build, with their defaults as text.
DEFAULT_OPTIONS: dict[str, str] = {
    "atombased": "no",
    "residuebased": "no",
    "onepair": "detailed",
    "group1": "",
    "group2": "",
    "type": "all",
    "vector2scalar": "norm",
    "residuesrenumber": "auto",
    "threshold": "1e-10",
    "time_averages_period": "1",
    "no_end_zeros": "no",
    "binary_result_file": "no",
    "energy_grp_exclusion": "",
    "nonbonded_exclusion_on": "yes",
    "bonded_exclusion_on": "yes",
    "normalize_psr": "no",
    "ignore_missing_potentials": "no",
}

DEPRECATED_OPTIONS: dict[str, str] = {
    "pf_atombased": "atombased",
    "pf_residuebased": "residuebased",
    "pf_onepair": "onepair",
    "pf_group1": "group1",
    "pf_group2": "group2",
    "pf_type": "type",
    "pf_vector2scalar": "vector2scalar",
    "pf_residuesrenumber": "residuesrenumber",
    "pf_threshold": "threshold",
    "pf_time_averages_period": "time_averages_period",
    "pf_no_end_zeros": "no_end_zeros",
}

_TRUE = {"yes", "true", "on", "1"}
_FALSE = {"no", "false", "off", "0"}


def normalize_key(key: str) -> str:
    """Lower-case a key and treat hyphens like underscores."""
    return re.sub(r"[-\s]+", "_", key.strip().lower())


def check_key(key: str) -> str:
    """
    Return the normalized key or raise for unknown and deprecated keys.

    Raises:
        ConfigurationError: If the key is deprecated or unknown.
    """
    norm = normalize_key(key)
    if norm in DEPRECATED_OPTIONS:
        raise ConfigurationError(
            f"Option '{key}' is deprecated, use '{DEPRECATED_OPTIONS[norm]}' instead"
        )
    if norm not in DEFAULT_OPTIONS:
        raise ConfigurationError(f"Unknown option '{key}'")
    return norm


def parse_bool(key: str, value: str | bool) -> bool:
    """Parse yes/no style flags."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"Option '{key}' expects yes or no, got '{value}'")


def read_pfi(filename: str | Path) -> dict[str, str]:
    """
    Read a ``.pfi`` option file.

    Lines have the form ``key = value``; ``;`` and ``#`` start comments.

    Args:
        filename: Path to the option file.

    Returns:
        Mapping of normalized keys to raw string values.

    Raises:
        ConfigurationError: For malformed lines, unknown or deprecated keys.
    """
    options: dict[str, str] = {}
    with Path(filename).open() as f:
        for lineno, raw in enumerate(f, start=1):
            line = re.split(r"[;#]", raw, maxsplit=1)[0].strip()
            if not line:
                continue
            if "=" not in line:
                raise ConfigurationError(f"{filename}:{lineno}: expected 'key = value'")
            key, value = line.split("=", 1)
            options[check_key(key)] = value.strip()
    return options
