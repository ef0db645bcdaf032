"""Frames, 2D features and 3D map points."""

from __future__ import annotations

import itertools
import threading
import weakref

import numpy as np

from slamkit.lie import SE3


def _deref(ref):
    return None if ref is None else ref()


class Feature:
    """A 2D feature point; after triangulation it refers to a map point.

    The frame and the map point are held by weak reference.
    """

    def __init__(self, frame=None, position=(0.0, 0.0)):
        self._frame = None
        self._map_point = None
        self.frame = frame
        self.position = np.asarray(position, dtype=float).reshape(-1)
        self.is_outlier = False
        self.is_on_left_image = True

    @property
    def frame(self):
        return _deref(self._frame)

    @frame.setter
    def frame(self, frame):
        self._frame = None if frame is None else weakref.ref(frame)

    @property
    def map_point(self):
        return _deref(self._map_point)

    @map_point.setter
    def map_point(self, map_point):
        self._map_point = None if map_point is None else weakref.ref(map_point)

    def __repr__(self) -> str:
        return f"Feature(position={self.position.tolist()}, outlier={self.is_outlier})"


class Frame:
    """A stereo frame with its own id, and a keyframe id once made a keyframe."""

    _ids = itertools.count()
    _keyframe_ids = itertools.count()

    def __init__(self, id=0, time_stamp=0.0, pose=None, left_img=None, right_img=None):
        self.id = id
        self.keyframe_id = 0
        self.is_keyframe = False
        self.time_stamp = time_stamp
        self._pose = SE3() if pose is None else pose
        self._pose_lock = threading.Lock()
        self.left_img = left_img
        self.right_img = right_img
        self.features_left: list[Feature] = []
        self.features_right: list[Feature | None] = []

    @property
    def pose(self) -> SE3:
        """World-to-camera pose (Tcw)."""
        with self._pose_lock:
            return self._pose

    @pose.setter
    def pose(self, pose: SE3):
        with self._pose_lock:
            self._pose = pose

    @classmethod
    def create(cls) -> "Frame":
        """A new frame with the next frame id."""
        frame = cls()
        frame.id = next(cls._ids)
        return frame

    def set_keyframe(self) -> None:
        """Mark as keyframe and assign the next keyframe id."""
        self.is_keyframe = True
        self.keyframe_id = next(Frame._keyframe_ids)

    def __repr__(self) -> str:
        return f"Frame(id={self.id}, keyframe_id={self.keyframe_id}, keyframe={self.is_keyframe})"


class MapPoint:
    """A landmark formed by triangulating features."""

    _ids = itertools.count()

    def __init__(self, id=0, position=None):
        self.id = id
        self.is_outlier = False
        self._pos = np.zeros(3) if position is None else np.asarray(position, dtype=float).copy()
        self._lock = threading.Lock()
        self.observed_times = 0
        self._observations: list[weakref.ref] = []

    @property
    def position(self) -> np.ndarray:
        with self._lock:
            return self._pos.copy()

    @position.setter
    def position(self, pos):
        with self._lock:
            self._pos = np.asarray(pos, dtype=float).copy()

    @classmethod
    def create(cls) -> "MapPoint":
        """A new map point with the next id."""
        point = cls()
        point.id = next(cls._ids)
        return point

    def add_observation(self, feature: Feature) -> None:
        with self._lock:
            self._observations.append(weakref.ref(feature))
            self.observed_times += 1

    def remove_observation(self, feature: Feature) -> None:
        """Drop the observation by ``feature`` and unlink it from this point."""
        with self._lock:
            for ref in self._observations:
                if ref() is feature:
                    self._observations.remove(ref)
                    feature.map_point = None
                    self.observed_times -= 1
                    break

    def observations(self) -> list[Feature]:
        """The observing features that still exist."""
        with self._lock:
            return [f for f in (ref() for ref in self._observations) if f is not None]

    def __repr__(self) -> str:
        return f"MapPoint(id={self.id}, position={self._pos.tolist()}, observed={self.observed_times})"