"""Temporary seatbelt profiles for `sandbox-exec`."""

import tempfile

SEATBELT_PROFILES = {
    "permissive-open": "(version 1)\n(allow default)\n",
    "restrictive-closed": (
        "(version 1)\n"
        "(deny default)\n"
        "(allow process*)\n"
        "(allow sysctl-read)\n"
        "(allow file-read*)\n"
        '(allow file-write* (subpath (param "TARGET_DIR")))\n'
        '(allow file-write* (subpath (param "TMP_DIR")))\n'
        '(allow file-write* (literal "/dev/stdout") (literal "/dev/stderr") (literal "/dev/null"))\n'
    ),
}


def write_seatbelt_profile(name: str) -> str:
    """Write the named profile to a temp file and return its path."""
    try:
        body = SEATBELT_PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown seatbelt profile '{name}'. "
            f"Expected one of: {', '.join(sorted(SEATBELT_PROFILES))}."
        ) from None
    profile = tempfile.NamedTemporaryFile(
        mode="w", prefix="tern_", suffix=".sb", delete=False, encoding="utf-8"
    )
    profile.write(body)
    profile.close()
    return profile.name
