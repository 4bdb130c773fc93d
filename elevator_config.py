"""
Elevator System Configuration File

This file contains all configuration parameters for the elevator system.
The values are fixed for the simulated building but are exposed as named
constants so tests and demo drivers can refer to them instead of magic numbers.
"""
import copy
from typing import Dict, Any


# Building geometry
NUM_FLOORS = 6
HOME_FLOOR = 1  # Floor the car returns to when idle

# Clock configuration
TICK_INTERVAL_MS = 16  # Period of the driving tick (milliseconds)

# Car motion
CAR_SPEED_FLOORS_PER_SECOND = 0.5  # i.e. 2 seconds per floor
ARRIVAL_EPSILON = 0.01  # Distance (in floors) at which the car counts as arrived

# Door operation timing
DOOR_ANIMATION_MS = 500  # Time for doors to fully open or fully close
DOOR_DWELL_MS = 2000  # Time doors stay open before deciding to close

# Idle behaviour
IDLE_HOMING_DELAY_MS = 5000  # Idle time before the car returns to the home floor

# Complete default configuration
DEFAULT_CONFIG = {
    "elevator": {
        "num_floors": NUM_FLOORS,
        "home_floor": HOME_FLOOR
    },
    "motion": {
        "speed": CAR_SPEED_FLOORS_PER_SECOND,
        "arrival_epsilon": ARRIVAL_EPSILON
    },
    "timing": {
        "tick_interval": TICK_INTERVAL_MS,
        "door_animation": DOOR_ANIMATION_MS,
        "door_dwell": DOOR_DWELL_MS,
        "idle_homing_delay": IDLE_HOMING_DELAY_MS
    }
}


def get_config() -> Dict[str, Any]:
    """
    Get elevator system configuration

    Returns:
        Dictionary containing complete configuration information. The copy is
        deep, so callers may adjust nested values without affecting defaults.
    """
    return copy.deepcopy(DEFAULT_CONFIG)
