import math
from dataclasses import dataclass
from types import MappingProxyType

from target_reacher.errors import ConfigurationError


STAGING_GOAL_X = 'aruco_target.x'
STAGING_GOAL_Y = 'aruco_target.y'
REFERENCE_FRAME = 'final_destination.frame_id'
MARKER_IDS = 'final_destination.marker_ids'

DEFAULT_PARAMETERS = {
    MARKER_IDS: [0, 1, 2, 3],
    'final_destination.child_frame_id': 'final_destination',
    'navigation_frame': 'odom',
    'rotation.angular_speed': 0.2,
    'transform.timeout_s': 5.0,
    'transform.retry_initial_s': 0.05,
    'transform.retry_max_s': 0.5,
    'goal_reached_topic': '/goal_reached',
    'aruco_markers_topic': '/aruco_markers',
    'cmd_vel_topic': '/robot1/cmd_vel',
    'goal_topic': '/robot1/goal',
}
"""Parameters that fall back to a default when the parameter file leaves them out"""


def offset_parameter_names(identity):
    return (f'final_destination.aruco_{identity}.x',
            f'final_destination.aruco_{identity}.y')


def required_parameters(marker_ids):
    """Parameters without a default, mapped to the python type they must hold"""
    required = {STAGING_GOAL_X: float, STAGING_GOAL_Y: float, REFERENCE_FRAME: str}
    for identity in marker_ids:
        for name in offset_parameter_names(identity):
            required[name] = float
    return required


@dataclass(frozen=True)
class Goal:
    """Position in the navigation frame (meters)"""
    x: float
    y: float


@dataclass(frozen=True)
class OffsetEntry:
    """Planar offset of the final goal from the reference frame for one marker id"""
    identity: int
    x: float
    y: float


class OffsetTable:
    """Closed, read-only map from marker id to the offset of the final goal.
    Every offset is relative to the single reference frame."""

    def __init__(self, reference_frame, entries):
        if not isinstance(reference_frame, str) or not reference_frame.strip():
            raise ConfigurationError('Reference frame name must be a non-empty string')
        table = {}
        for entry in entries:
            if entry.identity in table:
                raise ConfigurationError(
                    f'Marker id {entry.identity} is declared more than once', identity=entry.identity)
            table[entry.identity] = entry
        if not table:
            raise ConfigurationError('At least one marker offset must be declared')
        self._reference_frame = reference_frame
        self._entries = MappingProxyType(table)

    @property
    def reference_frame(self):
        return self._reference_frame

    @property
    def identities(self):
        return tuple(sorted(self._entries))

    def lookup(self, identity):
        """Return (offset_x, offset_y) for a declared marker id"""
        entry = self._entries.get(identity)
        if entry is None:
            raise ConfigurationError(
                f'No final destination configured for marker id {identity} '
                f'(declared ids: {list(self.identities)})',
                identity=identity
            )
        return entry.x, entry.y

    def __contains__(self, identity):
        return identity in self._entries

    def __len__(self):
        return len(self._entries)


def _number(params, name):
    value = params.get(name)
    if value is None:
        raise ConfigurationError(f"Missing required parameter '{name}'")
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Parameter '{name}' must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(f"Parameter '{name}' must be finite, got {value}")
    return value


def _text(params, name):
    value = params.get(name)
    if value is None:
        raise ConfigurationError(f"Missing required parameter '{name}'")
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Parameter '{name}' must be a non-empty string, got {value!r}")
    return value.strip()


def _marker_ids(params):
    ids = params.get(MARKER_IDS)
    if ids is None:
        ids = DEFAULT_PARAMETERS[MARKER_IDS]
    ids = list(ids)
    if not ids:
        raise ConfigurationError(f"Parameter '{MARKER_IDS}' must list at least one marker id")
    for identity in ids:
        if isinstance(identity, bool) or not isinstance(identity, int):
            raise ConfigurationError(f"Parameter '{MARKER_IDS}' must hold integers, got {identity!r}")
    return ids


@dataclass(frozen=True)
class TargetReacherConfig:
    """Everything the target reacher reads from its parameters, validated once at startup"""
    staging_goal: Goal
    offsets: OffsetTable
    derived_frame: str = 'final_destination'
    navigation_frame: str = 'odom'
    angular_speed: float = 0.2
    transform_timeout: float = 5.0
    retry_initial: float = 0.05
    retry_max: float = 0.5
    goal_reached_topic: str = '/goal_reached'
    aruco_markers_topic: str = '/aruco_markers'
    cmd_vel_topic: str = '/robot1/cmd_vel'
    goal_topic: str = '/robot1/goal'

    def __post_init__(self):
        if self.derived_frame in (self.offsets.reference_frame, self.navigation_frame):
            raise ConfigurationError(
                f"Derived frame '{self.derived_frame}' must differ from the reference "
                f"and navigation frames")
        if self.angular_speed == 0.0:
            raise ConfigurationError("Parameter 'rotation.angular_speed' must not be zero")
        if self.transform_timeout <= 0.0:
            raise ConfigurationError("Parameter 'transform.timeout_s' must be positive")
        if self.retry_initial <= 0.0 or self.retry_max < self.retry_initial:
            raise ConfigurationError(
                "Retry delays must satisfy 0 < 'transform.retry_initial_s' <= 'transform.retry_max_s'")

    @property
    def reference_frame(self):
        return self.offsets.reference_frame

    @classmethod
    def from_parameters(cls, params):
        """Build from a flat {parameter name: value} mapping. Missing values may be None."""
        merged = dict(DEFAULT_PARAMETERS)
        merged.update({k: v for k, v in params.items() if v is not None})

        entries = []
        for identity in _marker_ids(merged):
            name_x, name_y = offset_parameter_names(identity)
            try:
                entries.append(OffsetEntry(identity, _number(merged, name_x), _number(merged, name_y)))
            except ConfigurationError as ex:
                raise ConfigurationError(str(ex), identity=identity) from None

        return cls(
            staging_goal=Goal(_number(merged, STAGING_GOAL_X), _number(merged, STAGING_GOAL_Y)),
            offsets=OffsetTable(_text(merged, REFERENCE_FRAME), entries),
            derived_frame=_text(merged, 'final_destination.child_frame_id'),
            navigation_frame=_text(merged, 'navigation_frame'),
            angular_speed=_number(merged, 'rotation.angular_speed'),
            transform_timeout=_number(merged, 'transform.timeout_s'),
            retry_initial=_number(merged, 'transform.retry_initial_s'),
            retry_max=_number(merged, 'transform.retry_max_s'),
            goal_reached_topic=_text(merged, 'goal_reached_topic'),
            aruco_markers_topic=_text(merged, 'aruco_markers_topic'),
            cmd_vel_topic=_text(merged, 'cmd_vel_topic'),
            goal_topic=_text(merged, 'goal_topic'),
        )
