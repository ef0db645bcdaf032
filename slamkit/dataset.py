"""Reading a KITTI-style stereo sequence: calibration and image pairs."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image

from slamkit.camera import Camera
from slamkit.entities import Frame
from slamkit.lie import SE3, SO3

logger = logging.getLogger(__name__)

_NUM_CAMERAS = 4
_PROJECTION_VALUES = 12


def parse_calibration(lines) -> list[Camera]:
    """Cameras from calibration text: per camera a name and a 3x4 projection matrix.

    Intrinsics are halved to match images downscaled by two; the baseline is
    the length of the translation ``K^-1 * p4``.
    """
    tokens = iter([tok for line in lines for tok in line.split()])
    cameras = []
    for i in range(_NUM_CAMERAS):
        name = next(tokens, None)
        values = [tok for _, tok in zip(range(_PROJECTION_VALUES), tokens)]
        if name is None or len(values) < _PROJECTION_VALUES:
            raise ValueError(f"calibration for camera {i} is incomplete")
        try:
            projection = np.array([float(v) for v in values]).reshape(3, 4)
        except ValueError as exc:
            raise ValueError(f"camera {i}: {exc}") from None
        k = projection[:, :3]
        t = np.linalg.solve(k, projection[:, 3])
        k = k * 0.5
        camera = Camera(k[0, 0], k[1, 1], k[0, 2], k[1, 2], float(np.linalg.norm(t)), SE3(SO3(), t))
        cameras.append(camera)
        logger.info("Camera %d extrinsics: %s", i, t)
    return cameras


def _load_gray(path: Path):
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("L"))
    except OSError:
        return None


def _half(img: np.ndarray) -> np.ndarray:
    rows, cols = img.shape
    h, w = round(rows * 0.5), round(cols * 0.5)
    return img[: 2 * h : 2, : 2 * w : 2].copy()


class Dataset:
    """A stereo sequence stored as ``calib.txt`` and ``image_0``/``image_1`` folders."""

    def __init__(self, path):
        self.path = Path(path)
        self.current_image_index = 0
        self.cameras: list[Camera] = []

    def init(self) -> None:
        """Read the camera calibration and rewind to the first image."""
        calib = self.path / "calib.txt"
        try:
            with open(calib, encoding="utf-8") as fh:
                self.cameras = parse_calibration(fh)
        except FileNotFoundError:
            logger.error("cannot find %s!", calib)
            raise
        self.current_image_index = 0

    def camera(self, camera_id: int) -> Camera:
        if not 0 <= camera_id < len(self.cameras):
            raise IndexError(f"no camera with id {camera_id}")
        return self.cameras[camera_id]

    def next_frame(self):
        """The next stereo frame with both images halved, or None when none is left."""
        name = f"{self.current_image_index:06d}.png"
        left = _load_gray(self.path / "image_0" / name)
        right = _load_gray(self.path / "image_1" / name)
        if left is None or right is None:
            logger.warning("cannot find images at index %d", self.current_image_index)
            return None
        logger.info("get new image")
        frame = Frame.create()
        frame.left_img = _half(left)
        frame.right_img = _half(right)
        self.current_image_index += 1
        return frame