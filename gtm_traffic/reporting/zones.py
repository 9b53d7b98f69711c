import re

_WHITESPACE = re.compile(r"\s+")


def parse_zone_list(zone_names: str) -> list[str]:
    """Turn the front end's comma-separated zone string into a clean list.

    Whitespace is removed everywhere, empty segments are dropped and order is kept.
    An empty result is valid here; callers reject it.
    """
    compact = _WHITESPACE.sub("", zone_names)
    return [zone for zone in compact.split(",") if zone]
