import logging
import threading
import time

from target_reacher.config import Goal
from target_reacher.errors import TargetReacherError, TransformUnavailable


class GoalResolver:
    """Turns the id of the detected marker into the final goal in the navigation frame.

    The offset for the id is published as a static frame under the reference frame,
    then the frame graph is asked where that frame sits in the navigation frame.
    The graph does the composition, so the reference frame may have any position
    and heading relative to the navigation frame.
    """

    def __init__(self, offsets, frame_graph, navigation_frame='odom',
                 derived_frame='final_destination', timeout=5.0,
                 retry_initial=0.05, retry_max=0.5, logger=None,
                 clock=time.monotonic, sleep=time.sleep):
        self.offsets = offsets
        self.frame_graph = frame_graph
        self.navigation_frame = navigation_frame
        self.derived_frame = derived_frame
        self.timeout = timeout
        """Seconds to keep retrying the navigation -> derived frame lookup"""
        self.retry_initial = retry_initial
        self.retry_max = retry_max
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._attempted = False
        self.published = None
        """(parent, child, x, y) of the derived frame once it has been published"""

    @classmethod
    def from_config(cls, config, frame_graph, logger=None, **kwargs):
        return cls(
            config.offsets,
            frame_graph,
            navigation_frame=config.navigation_frame,
            derived_frame=config.derived_frame,
            timeout=config.transform_timeout,
            retry_initial=config.retry_initial,
            retry_max=config.retry_max,
            logger=logger,
            **kwargs
        )

    def resolve(self, identity):
        """Compute the goal for a marker id. Can only be called once per resolver."""
        with self._lock:
            if self._attempted:
                raise TargetReacherError('Final goal has already been resolved for this run')
            self._attempted = True

        offset_x, offset_y = self.offsets.lookup(identity)
        reference_frame = self.offsets.reference_frame
        self.logger.info(
            f'Marker {identity}: final destination is ({offset_x:.2f}, {offset_y:.2f}) '
            f'in {reference_frame}'
        )

        self.frame_graph.publish_static_transform(reference_frame, self.derived_frame, offset_x, offset_y)
        self.published = (reference_frame, self.derived_frame, offset_x, offset_y)

        x, y = self._wait_for_translation()
        self.logger.info(f'Final destination in {self.navigation_frame}: ({x:.2f}, {y:.2f})')
        return Goal(x, y)

    def _wait_for_translation(self):
        deadline = self._clock() + self.timeout
        delay = self.retry_initial
        attempts = 0
        while True:
            attempts += 1
            try:
                return self.frame_graph.lookup_translation(self.navigation_frame, self.derived_frame)
            except TransformUnavailable as ex:
                remaining = deadline - self._clock()
                if remaining <= 0.0:
                    raise TransformUnavailable(
                        self.navigation_frame, self.derived_frame,
                        timeout=self.timeout,
                        reason=f'gave up after {attempts} attempts ({ex})'
                    ) from ex
                self.logger.debug(f'Transform not ready (attempt {attempts}): {ex}')
                self._sleep(min(delay, remaining))
                delay = min(delay * 2.0, self.retry_max)
