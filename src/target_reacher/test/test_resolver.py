import math

import pytest

from target_reacher.config import Goal
from target_reacher.errors import ConfigurationError, TargetReacherError, TransformUnavailable
from target_reacher.frames import FrameTree
from target_reacher.resolver import GoalResolver


class LateFrameTree(FrameTree):
    """Answers lookups only after a number of failed attempts, like a tf buffer still filling"""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def lookup_translation(self, target_frame, source_frame):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise TransformUnavailable(target_frame, source_frame, reason='extrapolation into the future')
        return super().lookup_translation(target_frame, source_frame)


def test_resolves_offset_into_navigation_frame(resolver, frame_tree):
    goal = resolver.resolve(1)

    assert (goal.x, goal.y) == pytest.approx((2.5, 2.0))
    assert isinstance(goal, Goal)
    assert frame_tree.static_frames == [('aruco_frame', 'final_destination', 0.5, -1.0)]
    assert resolver.published == ('aruco_frame', 'final_destination', 0.5, -1.0)


def test_rotated_reference_frame(config, clock):
    tree = FrameTree()
    tree.set_transform('odom', 'aruco_frame', 1.0, 2.0, math.pi / 2)
    resolver = GoalResolver.from_config(config, tree, clock=clock, sleep=clock.sleep)

    goal = resolver.resolve(0)

    # offset (1, -2) turned by 90 degrees is (2, 1)
    assert (goal.x, goal.y) == pytest.approx((3.0, 3.0))


def test_undeclared_marker_publishes_nothing(resolver, frame_tree):
    with pytest.raises(ConfigurationError) as info:
        resolver.resolve(9)

    assert info.value.identity == 9
    assert frame_tree.static_frames == []
    assert resolver.published is None


def test_gives_up_when_transform_never_arrives(config, clock):
    tree = FrameTree()  # odom and aruco_frame are never connected
    resolver = GoalResolver.from_config(config, tree, clock=clock, sleep=clock.sleep)

    with pytest.raises(TransformUnavailable) as info:
        resolver.resolve(1)

    assert info.value.target_frame == 'odom'
    assert info.value.source_frame == 'final_destination'
    assert info.value.timeout == config.transform_timeout
    assert 'odom' in str(info.value) and 'final_destination' in str(info.value)
    assert clock.now == pytest.approx(config.transform_timeout)


def test_retries_back_off_up_to_the_cap(config, clock):
    resolver = GoalResolver.from_config(config, FrameTree(), clock=clock, sleep=clock.sleep)

    with pytest.raises(TransformUnavailable):
        resolver.resolve(1)

    assert clock.sleeps[:5] == pytest.approx([0.05, 0.1, 0.2, 0.4, 0.5])
    assert max(clock.sleeps) == pytest.approx(config.retry_max)
    assert sum(clock.sleeps) == pytest.approx(config.transform_timeout)


def test_waits_for_a_late_transform(config, clock):
    tree = LateFrameTree(failures=3)
    tree.set_transform('odom', 'aruco_frame', 2.0, 3.0)
    resolver = GoalResolver.from_config(config, tree, clock=clock, sleep=clock.sleep)

    goal = resolver.resolve(1)

    assert (goal.x, goal.y) == pytest.approx((2.5, 2.0))
    assert tree.attempts == 4
    assert clock.sleeps == pytest.approx([0.05, 0.1, 0.2])


def test_resolves_only_once(resolver, frame_tree):
    resolver.resolve(1)
    with pytest.raises(TargetReacherError, match='already'):
        resolver.resolve(2)
    assert len(frame_tree.static_frames) == 1
