"""
SCAN dispatch policy for a single car.

The car keeps serving requests in its committed direction and reverses only
when nothing is left ahead. Call buttons are filtered by direction: an up-call
is only served by a car travelling up and a down-call only by a car travelling
down, while internal requests are served either way.
"""
import logging
from typing import AbstractSet, Iterable, Optional

from elevator_interface import ElevatorDirection

logger = logging.getLogger("ElevatorSystem")


def _lowest_above(floors: Iterable[int], current_floor: int) -> Optional[int]:
    return min((f for f in floors if f > current_floor), default=None)


def _highest_below(floors: Iterable[int], current_floor: int) -> Optional[int]:
    return max((f for f in floors if f < current_floor), default=None)


def _nearest(floors: Iterable[int], current_floor: int) -> Optional[int]:
    # Equal distance goes to the higher floor
    return min(floors, key=lambda f: (abs(f - current_floor), -f), default=None)


def next_target(direction: ElevatorDirection,
                current_floor: int,
                internal_queue: AbstractSet[int],
                up_calls: AbstractSet[int],
                down_calls: AbstractSet[int]) -> Optional[int]:
    """
    Choose the next floor the car should head for.

    Args:
        direction: Committed travel direction of the car
        current_floor: Floor the car is at
        internal_queue: Floors selected inside the car
        up_calls: Floors with a lit up button
        down_calls: Floors with a lit down button

    Returns:
        The floor to target, ``current_floor`` if a request there should be
        served in place, or None when no request is pending at all
    """
    all_floors = set(internal_queue) | set(up_calls) | set(down_calls)
    if not all_floors:
        return None

    up_floors = set(internal_queue) | set(up_calls)
    down_floors = set(internal_queue) | set(down_calls)

    target: Optional[int] = None
    if direction == ElevatorDirection.UP:
        target = _lowest_above(up_floors, current_floor)
        if target is None:
            # Nothing left above, reverse
            target = _highest_below(down_floors, current_floor)
        if target is None:
            target = _highest_below(up_floors, current_floor)
            if target is not None:
                logger.warning(f"Stray up request at floor {target} behind car at floor {current_floor}",
                               extra={"floor": current_floor, "direction": str(direction),
                                      "reason": "stray_request"})
    elif direction == ElevatorDirection.DOWN:
        target = _highest_below(down_floors, current_floor)
        if target is None:
            target = _lowest_above(up_floors, current_floor)
        if target is None:
            target = _lowest_above(down_floors, current_floor)
            if target is not None:
                logger.warning(f"Stray down request at floor {target} behind car at floor {current_floor}",
                               extra={"floor": current_floor, "direction": str(direction),
                                      "reason": "stray_request"})
    else:
        target = _idle_target(current_floor, all_floors, up_floors, down_floors)

    if target is None:
        # Only calls pointing against the sweep remain, e.g. a down-call above an
        # ascending car. Head for the nearest one, the motion rules reverse there.
        target = _nearest(all_floors, current_floor)
        logger.info(f"No directional target from floor {current_floor}, falling back to nearest floor {target}",
                    extra={"floor": current_floor, "direction": str(direction), "reason": "fallback"})

    logger.debug(f"Dispatch from floor {current_floor} ({direction}) -> {target}",
                 extra={"floor": current_floor, "direction": str(direction), "target": target})
    return target


def _idle_target(current_floor: int, all_floors: AbstractSet[int],
                 up_floors: AbstractSet[int], down_floors: AbstractSet[int]) -> Optional[int]:
    """
    Pick a target for a car without a committed direction.

    Requests at the current floor are served in place. Otherwise the nearer of
    the closest serviceable floor above (internal or up-call) and the closest
    serviceable floor below (internal or down-call) wins; ties go UP.
    """
    if current_floor in all_floors:
        return current_floor

    nearest_up = _lowest_above(up_floors, current_floor)
    nearest_down = _highest_below(down_floors, current_floor)

    if nearest_up is not None and nearest_down is not None:
        if nearest_up - current_floor <= current_floor - nearest_down:
            return nearest_up
        return nearest_down
    if nearest_up is not None:
        return nearest_up
    if nearest_down is not None:
        return nearest_down

    # e.g. only a down-call above or an up-call below
    return _nearest(all_floors, current_floor)
