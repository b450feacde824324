import logging
import threading
from dataclasses import dataclass
from enum import Enum

from target_reacher.errors import MalformedEvent, TargetReacherError


class AcquisitionState(Enum):
    """Indicates where the robot is in the search for the marker"""
    SEARCHING = 0
    """Robot is going to, or sitting at, the staging goal and turns each time it reports arrival"""
    RESOLVED = 1
    """A marker has been seen. Rotation is over and the final goal is computed exactly once"""
    FAILED = 2
    """A marker has been seen but no goal could be derived from it. Nothing else happens this run"""


@dataclass(frozen=True)
class MarkerObservation:
    """One detected marker as reported by the detection pipeline"""
    identity: int
    source_frame: str
    stamp: object = None


class MotionInterface:
    """What the state machine needs from the motion controller"""

    def rotate_in_place(self):
        """Send one fixed angular velocity command with zero linear velocity"""
        raise NotImplementedError

    def stop(self):
        """Send one zero velocity command"""
        raise NotImplementedError

    def set_goal(self, x, y):
        """Give the controller its next destination in the navigation frame"""
        raise NotImplementedError


def _check_arrival(reached):
    if not isinstance(reached, bool):
        raise MalformedEvent(f'Arrival report must carry a bool, got {reached!r}')


def _check_observation(observation):
    if not isinstance(observation, MarkerObservation):
        raise MalformedEvent(f'Expected a MarkerObservation, got {observation!r}')
    identity = observation.identity
    if isinstance(identity, bool) or not isinstance(identity, int) or identity < 0:
        raise MalformedEvent(f'Marker id must be a non-negative integer, got {identity!r}')
    if not isinstance(observation.source_frame, str) or not observation.source_frame:
        raise MalformedEvent(f'Marker {identity} has no source frame')


class AcquisitionStateMachine:
    """Rotates the robot at the staging goal until a marker shows up, then resolves the goal once.

    Arrival reports and marker observations can come in on different executor
    threads. The latch is the move out of SEARCHING; reading the state and either
    emitting a rotation or leaving SEARCHING happen under one lock, so a rotation
    can never follow the first observation and only one observation ever reaches
    the resolver.
    """

    def __init__(self, motion, resolver, logger=None, stop_on_detection=True):
        self.motion = motion
        self.resolver = resolver
        self.logger = logger or logging.getLogger(__name__)
        self.stop_on_detection = stop_on_detection
        """Publish a zero velocity command when the marker is first seen"""
        self._lock = threading.Lock()
        self._state = AcquisitionState.SEARCHING
        self._rotation_count = 0
        self.observation = None
        """The observation that flipped the latch"""
        self.goal = None
        """Final goal handed to the motion controller"""
        self.failure = None
        """Error that ended the run, if any"""

    @property
    def state(self):
        return self._state

    @property
    def latched(self):
        return self._state is not AcquisitionState.SEARCHING

    @property
    def rotation_count(self):
        """Rotation commands sent so far"""
        return self._rotation_count

    def handle_arrival(self, reached):
        """Returns True when a rotation command was emitted"""
        try:
            _check_arrival(reached)
        except MalformedEvent as ex:
            self.logger.warning(f'Dropping arrival report: {ex}')
            return False

        with self._lock:
            if self._state is not AcquisitionState.SEARCHING:
                return False
            if not reached:
                return False
            self.motion.rotate_in_place()
            self._rotation_count += 1
            count = self._rotation_count

        if count == 1:
            self.logger.info('Reached staging goal, rotating to look for a marker')
        else:
            self.logger.debug(f'Rotation command {count}')
        return True

    def handle_marker(self, observation):
        """Returns the final goal for the first valid observation, None for anything ignored.
        ConfigurationError and TransformUnavailable propagate after moving to FAILED."""
        try:
            _check_observation(observation)
        except MalformedEvent as ex:
            self.logger.warning(f'Dropping marker observation: {ex}')
            return None

        with self._lock:
            if self._state is not AcquisitionState.SEARCHING:
                self.logger.debug(f'Ignoring marker {observation.identity}, already {self._state.name}')
                return None
            self._state = AcquisitionState.RESOLVED
            self.observation = observation

        self.logger.info(
            f'Detected marker {observation.identity} in {observation.source_frame}, stopping search'
        )
        if self.stop_on_detection:
            self.motion.stop()

        try:
            goal = self.resolver.resolve(observation.identity)
        except TargetReacherError as ex:
            with self._lock:
                self._state = AcquisitionState.FAILED
                self.failure = ex
            self.logger.error(f'Could not resolve final goal for marker {observation.identity}: {ex}')
            raise

        self.goal = goal
        self.motion.set_goal(goal.x, goal.y)
        return goal
