"""Reading pose trajectories and comparing an estimate against ground truth."""

from __future__ import annotations

import argparse
import math
import sys

import numpy as np

from slamkit.lie import SE3

_FIELDS = 8


def parse_trajectory(lines) -> list[SE3]:
    """Poses from lines of ``time tx ty tz qx qy qz qw``.

    Blank lines and lines starting with ``#`` are skipped.
    """
    poses = []
    for lineno, line in enumerate(lines, 1):
        fields = line.split()
        if not fields or fields[0].startswith("#"):
            continue
        if len(fields) != _FIELDS:
            raise ValueError(
                f"line {lineno}: expected {_FIELDS} values, got {len(fields)}"
            )
        try:
            values = [float(f) for f in fields]
        except ValueError as exc:
            raise ValueError(f"line {lineno}: {exc}") from None
        _, tx, ty, tz, qx, qy, qz, qw = values
        poses.append(SE3.from_quaternion(qw, qx, qy, qz, translation=(tx, ty, tz)))
    return poses


def read_trajectory(path) -> list[SE3]:
    """Poses from a trajectory file; see :func:`parse_trajectory`."""
    with open(path, encoding="utf-8") as fh:
        return parse_trajectory(fh)


def trajectory_rmse(groundtruth, estimated) -> float:
    """Root mean square of the pose errors ``|log(Tgt^-1 * Test)|``."""
    groundtruth = list(groundtruth)
    estimated = list(estimated)
    if not groundtruth or not estimated:
        raise ValueError("trajectories must not be empty")
    if len(groundtruth) != len(estimated):
        raise ValueError(
            f"trajectories differ in length: {len(groundtruth)} vs {len(estimated)}"
        )
    total = 0.0
    for gt, est in zip(groundtruth, estimated):
        error = float(np.linalg.norm((gt.inverse() * est).log()))
        total += error * error
    return math.sqrt(total / len(estimated))


def _load(path):
    try:
        return read_trajectory(path)
    except FileNotFoundError:
        print(f"trajectory {path} not found.", file=sys.stderr)
        return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="trajectory",
        description="Read a trajectory, or compute the RMSE of an estimate against ground truth.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        default=["groundtruth.txt", "estimated.txt"],
        help="one trajectory file, or ground truth followed by estimate",
    )
    args = parser.parse_args(argv)
    if len(args.files) > 2:
        parser.error("at most two trajectory files may be given")

    groundtruth = _load(args.files[0])
    if groundtruth is None:
        return 1
    if len(args.files) == 1:
        print(f"read total {len(groundtruth)} pose entries")
        return 0

    estimated = _load(args.files[1])
    if estimated is None:
        return 1
    try:
        rmse = trajectory_rmse(groundtruth, estimated)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1
    print(f"RMSE = {rmse}")
    return 0


if __name__ == "__main__":
    sys.exit(main())