import math
import threading

import numpy as np

from target_reacher.errors import TransformUnavailable


def planar_transform(x, y, yaw=0.0):
    """3x3 homogeneous matrix taking child coordinates into the parent frame"""
    c, s = math.cos(yaw), math.sin(yaw)
    return np.array([
        [c, -s, x],
        [s,  c, y],
        [0.0, 0.0, 1.0]
    ])


class FrameGraph:
    """Named frames connected by rigid transforms.

    The resolver only needs two things from it: publish a frame that never moves,
    and ask where the origin of one frame sits inside another. Implementations
    raise TransformUnavailable when the second question cannot be answered yet.
    """

    def publish_static_transform(self, parent_frame, child_frame, x, y):
        """Attach child_frame to parent_frame at (x, y, 0) with identity rotation"""
        raise NotImplementedError

    def lookup_translation(self, target_frame, source_frame):
        """Return (x, y) of the origin of source_frame expressed in target_frame, at the latest time"""
        raise NotImplementedError


class FrameTree(FrameGraph):
    """In-memory planar frame tree.

    Each frame has at most one parent, the same shape tf2 uses. Transforms are
    stored as homogeneous matrices so lookups compose translation and yaw
    through every link between the two frames.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._links = {}
        """{child: (parent, 3x3 matrix child -> parent)}"""
        self._frames = set()
        self.static_frames = []
        """(parent, child, x, y) for every static publication, in order"""

    def set_transform(self, parent_frame, child_frame, x, y, yaw=0.0):
        """Create or move child_frame relative to parent_frame"""
        if parent_frame == child_frame:
            raise ValueError(f"Frame '{child_frame}' cannot be its own parent")
        with self._lock:
            # Refuse links that would close a loop
            ancestor = parent_frame
            while ancestor is not None:
                if ancestor == child_frame:
                    raise ValueError(f"Linking '{child_frame}' under '{parent_frame}' creates a cycle")
                ancestor = self._links.get(ancestor, (None,))[0]
            self._links[child_frame] = (parent_frame, planar_transform(x, y, yaw))
            self._frames.update((parent_frame, child_frame))

    def publish_static_transform(self, parent_frame, child_frame, x, y):
        self.set_transform(parent_frame, child_frame, x, y)
        self.static_frames.append((parent_frame, child_frame, x, y))

    def _chain_to_root(self, frame):
        matrix = np.eye(3)
        while frame in self._links:
            parent, local = self._links[frame]
            matrix = local @ matrix
            frame = parent
        return frame, matrix

    def lookup_transform(self, target_frame, source_frame):
        """3x3 matrix taking source_frame coordinates into target_frame"""
        with self._lock:
            for frame in (target_frame, source_frame):
                if frame not in self._frames:
                    raise TransformUnavailable(
                        target_frame, source_frame, reason=f"frame '{frame}' does not exist")
            source_root, root_from_source = self._chain_to_root(source_frame)
            target_root, root_from_target = self._chain_to_root(target_frame)
        if source_root != target_root:
            raise TransformUnavailable(
                target_frame, source_frame,
                reason=f"frames belong to unconnected trees '{target_root}' and '{source_root}'")
        return np.linalg.inv(root_from_target) @ root_from_source

    def lookup_translation(self, target_frame, source_frame):
        matrix = self.lookup_transform(target_frame, source_frame)
        return float(matrix[0, 2]), float(matrix[1, 2])
