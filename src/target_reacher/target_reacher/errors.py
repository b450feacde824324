class TargetReacherError(Exception):
    """Base class for every error raised by the target reacher"""


class ConfigurationError(TargetReacherError):
    """A required parameter is missing or invalid, or a marker id has no offset entry.
    Fatal for the run: no goal can be derived."""

    def __init__(self, message, identity=None):
        super().__init__(message)
        self.identity = identity


class TransformUnavailable(TargetReacherError):
    """The frame graph could not relate two frames before the timeout ran out"""

    def __init__(self, target_frame, source_frame, timeout=None, reason=''):
        message = f"No transform from '{source_frame}' to '{target_frame}'"
        if timeout is not None:
            message += f' after {timeout:.2f}s'
        if reason:
            message += f': {reason}'
        super().__init__(message)
        self.target_frame = target_frame
        self.source_frame = source_frame
        self.timeout = timeout


class MalformedEvent(TargetReacherError):
    """An arrival report or marker observation with an unusable payload. Dropped, never fatal."""
