"""Shared ID / name normalization used across all pipeline modules.

Team IDs come straight from the upstream feed and are kept as strings.
Player IDs are derived here so that every module (extraction, aggregation,
persistence) produces the same key for the same player on the same team.
"""

from __future__ import annotations

import html as _html
import re
import unicodedata
from typing import Optional, Tuple


def normalize_name_token(name: str) -> str:
    """Convert an arbitrary name string to a canonical underscore-delimited token.

    Steps:
    1. Decode HTML entities (``&amp;`` → ``&``)
    2. NFKD-normalize Unicode and strip combining marks (``é`` → ``e``)
    3. Lowercase
    4. Replace non-alphanumeric characters with ``_``
    5. Collapse repeated underscores and strip leading/trailing ``_``

    Examples::

        >>> normalize_name_token("Texas A&amp;M")
        'texas_a_m'
        >>> normalize_name_token("José  O'Neal")
        'jose_o_neal'
    """
    if not name:
        return ""
    s = _html.unescape(str(name))
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.lower()
    s = re.sub(r"[^a-z0-9]", "_", s)
    s = re.sub(r"_+", "_", s)
    return s.strip("_")


def normalize_team_id(value: object) -> str:
    """Upstream team IDs arrive as ints or strings; store them as trimmed strings."""
    if value is None:
        return ""
    return str(value).strip()


def split_full_name(full_name: str) -> Tuple[str, str]:
    """Split ``"First Middle Last"`` into ``("First", "Middle Last")``."""
    parts = str(full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def build_player_id(
    team_id: str,
    upstream_id: Optional[object],
    first_name: str,
    last_name: str,
) -> str:
    """Derive the stable player key ``<team>_<upstream id or 0>_<first>_<last>``.

    The name part is normalized so that accents, casing, and punctuation
    differences between payloads do not create a second row for the same
    player.
    """
    uid = str(upstream_id).strip() if upstream_id not in (None, "") else "0"
    return "_".join(
        [
            normalize_team_id(team_id),
            uid,
            normalize_name_token(first_name),
            normalize_name_token(last_name),
        ]
    )
