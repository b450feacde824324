import threading

import pytest

from target_reacher.acquisition import AcquisitionStateMachine, MotionInterface
from target_reacher.config import TargetReacherConfig
from target_reacher.frames import FrameTree
from target_reacher.resolver import GoalResolver


class RecordingMotion(MotionInterface):
    """Keeps every command in the order it was sent"""

    def __init__(self):
        self.commands = []
        self._lock = threading.Lock()

    def _record(self, *command):
        with self._lock:
            self.commands.append(command)

    def rotate_in_place(self):
        self._record('rotate')

    def stop(self):
        self._record('stop')

    def set_goal(self, x, y):
        self._record('goal', x, y)

    @property
    def rotations(self):
        return sum(1 for c in self.commands if c[0] == 'rotate')

    @property
    def goals(self):
        return [c[1:] for c in self.commands if c[0] == 'goal']


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def params():
    return {
        'aruco_target.x': 2.0,
        'aruco_target.y': 3.0,
        'final_destination.frame_id': 'aruco_frame',
        'final_destination.aruco_0.x': 1.0,
        'final_destination.aruco_0.y': -2.0,
        'final_destination.aruco_1.x': 0.5,
        'final_destination.aruco_1.y': -1.0,
        'final_destination.aruco_2.x': -1.5,
        'final_destination.aruco_2.y': 2.0,
        'final_destination.aruco_3.x': 3.0,
        'final_destination.aruco_3.y': 0.5,
    }


@pytest.fixture
def config(params):
    return TargetReacherConfig.from_parameters(params)


@pytest.fixture
def frame_tree():
    # reference frame sits at the staging goal, aligned with odom
    tree = FrameTree()
    tree.set_transform('odom', 'aruco_frame', 2.0, 3.0)
    return tree


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def resolver(config, frame_tree, clock):
    return GoalResolver.from_config(config, frame_tree, clock=clock, sleep=clock.sleep)


@pytest.fixture
def motion():
    return RecordingMotion()


@pytest.fixture
def machine(motion, resolver):
    return AcquisitionStateMachine(motion, resolver)
