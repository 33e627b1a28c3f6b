"""Random free port generation.

Ports are found by sampling with rejection: draw uniformly from the range and
keep the first draw that is not in use. Every free port is reachable, but a
nearly saturated range can need many draws, so the search is capped by
``max_attempts`` and turns into :class:`GenerationExhaustedError` instead of
looping. An optional ascending scan of the range runs after the draws are
used up. Nothing is reserved: the port is free only as of the snapshot.
"""

import random
from collections.abc import Collection


from ..models.ports import PortInventory
from .availability import MAX_PORT, MIN_PORT
from .exceptions import GenerationExhaustedError, PortValidationError
from .logging_config import get_server_logger

logger = get_server_logger()

DEFAULT_RANGE_LOW = 3000
DEFAULT_RANGE_HIGH = 9999
DEFAULT_MAX_ATTEMPTS = 100


def validate_range(range_low: int, range_high: int, max_attempts: int) -> None:
    """Validate generation bounds.

    Raises:
        PortValidationError: If a bound or the attempt budget is invalid
    """
    for field, value in (("range_low", range_low), ("range_high", range_high)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise PortValidationError(f"{field} must be an integer", field=field, value=value)
        if not (MIN_PORT <= value <= MAX_PORT):
            raise PortValidationError(
                f"{field} must be between {MIN_PORT} and {MAX_PORT}, got {value}",
                field=field,
                value=value,
            )

    if range_low > range_high:
        raise PortValidationError(
            f"range_low ({range_low}) must not exceed range_high ({range_high})",
            field="range_low",
            value=range_low,
        )

    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
        raise PortValidationError(
            "max_attempts must be a positive integer", field="max_attempts", value=max_attempts
        )


def _scan_range(range_low: int, range_high: int, used: Collection[int]) -> int | None:
    """Return the lowest free port in the range, if any."""
    for port in range(range_low, range_high + 1):
        if port not in used:
            return port
    return None


def draw_free_port(
    inventory: PortInventory,
    range_low: int = DEFAULT_RANGE_LOW,
    range_high: int = DEFAULT_RANGE_HIGH,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    rng: random.Random | None = None,
    exhaustive_fallback: bool = False,
) -> tuple[int, int]:
    """Search for a free port and report how many draws it took.

    Returns:
        Tuple of (port, attempts)

    Raises:
        PortValidationError: If the range or attempt budget is invalid
        GenerationExhaustedError: If no free port was found
    """
    validate_range(range_low, range_high, max_attempts)

    rng = rng or random.SystemRandom()
    used = set(inventory.used_ports)

    for attempt in range(1, max_attempts + 1):
        candidate = rng.randint(range_low, range_high)
        if candidate not in used:
            return candidate, attempt

    if exhaustive_fallback:
        port = _scan_range(range_low, range_high, used)
        if port is not None:
            logger.info(
                "Random sampling exhausted, found port by range scan",
                port=port,
                range_low=range_low,
                range_high=range_high,
                attempts=max_attempts,
            )
            return port, max_attempts

    logger.warning(
        "Random port generation exhausted",
        range_low=range_low,
        range_high=range_high,
        attempts=max_attempts,
        used_in_range=sum(1 for port in used if range_low <= port <= range_high),
    )
    raise GenerationExhaustedError(range_low, range_high, max_attempts)


def generate_random_port(
    inventory: PortInventory,
    range_low: int = DEFAULT_RANGE_LOW,
    range_high: int = DEFAULT_RANGE_HIGH,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    rng: random.Random | None = None,
    exhaustive_fallback: bool = False,
) -> int:
    """Return a random port in ``[range_low, range_high]`` not in the inventory."""
    port, _ = draw_free_port(
        inventory,
        range_low,
        range_high,
        max_attempts,
        rng=rng,
        exhaustive_fallback=exhaustive_fallback,
    )
    return port
