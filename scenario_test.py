"""
End-to-end elevator scenarios driven by simulated ticks.

Every scenario runs the full controller (request store, dispatch, motion,
doors and idle homing) and checks the car invariants on every snapshot.
"""
import unittest

from elevator_config import IDLE_HOMING_DELAY_MS, NUM_FLOORS, TICK_INTERVAL_MS
from elevator_controller import ElevatorController
from elevator_interface import DoorState, ElevatorDirection


class InvariantObserver:
    """Observer checking car invariants and recording stops"""

    def __init__(self, test: unittest.TestCase) -> None:
        self.test = test
        self.stops = []
        self.stop_directions = []
        self.passed = []
        self.door_states = []

    def on_snapshot(self, snapshot):
        if snapshot.is_moving:
            self.test.assertEqual(snapshot.door_state, DoorState.CLOSED)
        self.test.assertGreaterEqual(snapshot.absolute_position, 1.0)
        self.test.assertLessEqual(snapshot.absolute_position, float(NUM_FLOORS))
        self.test.assertGreaterEqual(snapshot.door_progress, 0.0)
        self.test.assertLessEqual(snapshot.door_progress, 1.0)
        if not self.door_states or self.door_states[-1] != snapshot.door_state:
            self.door_states.append(snapshot.door_state)

    def on_arrival(self, floor, direction, stopped):
        if stopped:
            self.stops.append(floor)
            self.stop_directions.append(direction)
        else:
            self.passed.append(floor)


class ElevatorScenarioTest(unittest.TestCase):
    """Integration tests for complete elevator journeys"""

    def setUp(self):
        self.controller = ElevatorController()
        self.observer = InvariantObserver(self)
        self.controller.subscribe(self.observer)

    def run_until(self, predicate, max_ms: float = 120000) -> float:
        elapsed = 0.0
        while not predicate():
            if elapsed >= max_ms:
                self.fail(f"Condition not reached within {max_ms} ms, stops so far: {self.observer.stops}")
            self.controller.tick(TICK_INTERVAL_MS)
            elapsed += TICK_INTERVAL_MS
        return elapsed

    def stopped_at(self, floor: int) -> bool:
        car = self.controller.car
        return car.current_floor == floor and not car.is_moving

    def at_home_and_idle(self) -> bool:
        car = self.controller.car
        return (car.current_floor == 1 and
                car.door_state == DoorState.OPEN and
                not self.controller.requests.has_any_request())

    def test_round_trip_to_floor_4_and_home(self):
        """Press 4 from home, serve it, then home automatically"""
        controller = self.controller
        car = controller.car

        controller.press_internal_button(4)
        self.assertEqual(car.door_state, DoorState.CLOSING)

        self.run_until(lambda: car.is_moving)
        self.assertEqual(car.direction, ElevatorDirection.UP)
        self.assertEqual(car.absolute_position, 1.0)

        self.run_until(lambda: self.stopped_at(4))
        self.assertEqual(car.absolute_position, 4.0)
        self.assertEqual(controller.requests.internal_queue, set())
        self.assertEqual(car.door_state, DoorState.OPENING)
        self.assertEqual(self.observer.passed, [2, 3])

        # Away from home the doors close after the dwell
        self.run_until(lambda: car.door_state == DoorState.CLOSING)
        self.run_until(lambda: car.door_state == DoorState.CLOSED)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.assertFalse(car.is_moving)

        # Idle homing kicks in five seconds after the stop
        waited = self.run_until(lambda: car.is_moving)
        self.assertEqual(car.direction, ElevatorDirection.DOWN)
        self.assertEqual(car.current_floor, 4)
        self.assertGreater(waited, 0)

        self.run_until(self.at_home_and_idle)
        self.assertEqual(car.absolute_position, 1.0)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.assertEqual(car.door_progress, 1.0)
        self.assertEqual(self.observer.stops, [4, 1])
        self.assertEqual(self.observer.door_states,
                         [DoorState.CLOSING, DoorState.CLOSED, DoorState.OPENING,
                          DoorState.CLOSING, DoorState.CLOSED, DoorState.OPENING, DoorState.OPEN])

    def test_homing_waits_full_idle_delay(self):
        controller = self.controller
        car = controller.car
        controller.press_internal_button(2)
        self.run_until(lambda: self.stopped_at(2))

        idle_ms = self.run_until(lambda: car.is_moving)
        self.assertGreaterEqual(idle_ms, IDLE_HOMING_DELAY_MS - TICK_INTERVAL_MS)
        self.assertLess(idle_ms, IDLE_HOMING_DELAY_MS + 2 * TICK_INTERVAL_MS)

    def test_ascending_car_skips_down_call_and_returns_for_it(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(5)
        self.run_until(lambda: car.is_moving and car.absolute_position >= 1.5)
        controller.request_down(3)
        controller.request_up(4)

        self.run_until(lambda: self.stopped_at(4))
        self.assertEqual(controller.requests.down_calls, {3})
        self.run_until(lambda: self.stopped_at(5))
        self.run_until(lambda: self.stopped_at(3))
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.DOWN)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.run_until(self.at_home_and_idle)

        self.assertEqual(self.observer.stops, [4, 5, 3, 1])

    def test_late_call_behind_the_car_is_served_after_reversal(self):
        controller = self.controller
        car = controller.car

        controller.request_down(5)
        self.run_until(lambda: car.is_moving and car.current_floor == 3)
        # Up-call behind the ascending car
        controller.request_up(2)

        self.run_until(lambda: self.stopped_at(5))
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.DOWN)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.assertEqual(controller.requests.up_calls, {2})

        self.run_until(lambda: self.stopped_at(2))
        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [5, 2, 1])
        self.assertIn(4, self.observer.passed)

    def test_top_floor_call_reverses_car(self):
        controller = self.controller
        car = controller.car

        controller.request_down(6)
        self.run_until(lambda: self.stopped_at(6))
        self.assertEqual(car.absolute_position, 6.0)
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.DOWN)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.assertEqual(car.door_state, DoorState.OPENING)

        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [6, 1])

    def test_request_while_dwelling_is_served_next(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(3)
        self.run_until(lambda: self.stopped_at(3))
        controller.press_internal_button(2)
        # Dwell is not cut short
        self.assertEqual(car.door_state, DoorState.OPENING)

        self.run_until(lambda: self.stopped_at(2))
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.DOWN)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [3, 2, 1])

    def test_cancelled_request_leaves_car_idle_then_homes(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(4)
        self.run_until(lambda: car.is_moving)
        controller.press_internal_button(4)
        self.assertEqual(controller.requests.internal_queue, set())

        # Nothing left: the car stops at the next floor with doors shut
        self.run_until(lambda: not car.is_moving)
        self.assertEqual(car.current_floor, 2)
        self.assertEqual(car.direction, ElevatorDirection.NONE)
        self.assertEqual(car.door_state, DoorState.CLOSED)

        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [2, 1])

    def test_car_without_passengers_picks_nearer_call_after_stop(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(3)
        self.run_until(lambda: self.stopped_at(3))
        self.assertEqual(car.direction, ElevatorDirection.NONE)

        # Both calls arrive while the doors are still dwelling
        controller.request_down(2)
        controller.request_up(5)
        self.assertEqual(car.door_state, DoorState.OPENING)

        self.run_until(lambda: car.is_moving)
        self.assertEqual(car.direction, ElevatorDirection.DOWN)
        self.assertEqual(controller.motion.target_floor, 2)

        self.run_until(lambda: self.stopped_at(2))
        self.run_until(lambda: self.stopped_at(5))
        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [3, 2, 5, 1])

    def test_call_below_after_emptying_car_is_not_treated_as_stray(self):
        controller = self.controller
        controller.press_internal_button(3)
        self.run_until(lambda: self.stopped_at(3))
        controller.request_up(2)

        with self.assertNoLogs("ElevatorSystem", level="WARNING"):
            self.run_until(lambda: self.stopped_at(2))
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.UP)
        self.assertFalse(controller.requests.has_any_request())

    def test_down_call_during_homing_is_served_on_the_way(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(4)
        self.run_until(lambda: self.stopped_at(4))
        self.run_until(lambda: car.is_moving)
        self.assertTrue(controller.motion.homing)

        controller.request_down(2)
        self.run_until(lambda: self.stopped_at(2))
        self.assertFalse(controller.motion.homing)
        self.assertEqual(car.door_state, DoorState.OPENING)
        self.assertFalse(controller.requests.has_any_request())
        self.assertEqual(self.observer.passed[-1], 3)
        # Idle away from home again: the timer restarts from this stop
        self.assertTrue(controller.homing_timer.pending)

        idle_ms = self.run_until(lambda: car.is_moving)
        self.assertGreaterEqual(idle_ms, IDLE_HOMING_DELAY_MS - TICK_INTERVAL_MS)
        self.assertTrue(controller.motion.homing)
        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [4, 2, 1])

    def test_up_call_during_homing_is_served_after_reaching_home(self):
        controller = self.controller
        car = controller.car

        controller.press_internal_button(4)
        self.run_until(lambda: self.stopped_at(4))
        self.run_until(lambda: car.is_moving)
        self.assertTrue(controller.motion.homing)
        passed_before = len(self.observer.passed)

        # Up-call behind the descending car
        controller.request_up(2)
        self.run_until(lambda: self.stopped_at(1))
        self.assertEqual(self.observer.passed[passed_before:], [3, 2])
        self.assertEqual(controller.requests.up_calls, {2})

        # Pending request: the doors close after the dwell instead of resting open
        self.run_until(lambda: self.stopped_at(2) and car.door_state == DoorState.OPENING)
        self.assertEqual(self.observer.stop_directions[-1], ElevatorDirection.UP)
        self.run_until(self.at_home_and_idle)
        self.assertEqual(self.observer.stops, [4, 1, 2, 1])


if __name__ == "__main__":
    unittest.main()
