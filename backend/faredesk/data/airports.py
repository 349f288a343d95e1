"""Airport data used by the booking flow."""

# Bangladesh domestic airports — itineraries entirely within this set
# do not need passport data.
DOMESTIC_AIRPORTS: frozenset[str] = frozenset({
    "DAC",  # Dhaka
    "CGP",  # Chattogram
    "CXB",  # Cox's Bazar
    "BZL",  # Barishal
    "JSR",  # Jashore
    "RJH",  # Rajshahi
    "ZYL",  # Sylhet
    "SPD",  # Saidpur
})

DEFAULT_NATIONALITY = "BD"
DEFAULT_DIALING_CODE = "880"


def is_domestic_route(origin_iata: str, dest_iata: str) -> bool:
    """Both ends inside the domestic set. Unknown airports are treated as international."""
    return origin_iata in DOMESTIC_AIRPORTS and dest_iata in DOMESTIC_AIRPORTS
