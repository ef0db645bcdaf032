"""Removing radial-tangential lens distortion from a grayscale image."""

from __future__ import annotations

import argparse
import sys

import numpy as np
from PIL import Image

K1 = -0.28340811
K2 = 0.07395907
P1 = 0.00019359
P2 = 1.76187114e-05
FX = 458.654
FY = 457.296
CX = 367.215
CY = 248.375


def undistort_image(image, k1=K1, k2=K2, p1=P1, p2=P2, fx=FX, fy=FY, cx=CX, cy=CY) -> np.ndarray:
    """Undistorted copy of a 2D image, by nearest-neighbour lookup.

    Pixels whose distorted position falls outside the image become 0.
    """
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError(f"image must be two-dimensional, got shape {img.shape}")
    rows, cols = img.shape
    v, u = np.mgrid[0:rows, 0:cols].astype(float)

    x = (u - cx) / fx
    y = (v - cy) / fy
    r = np.sqrt(x * x + y * y)
    radial = 1 + k1 * r * r + k2 * r * r * r * r
    x_distorted = x * radial + 2 * p1 * x * y + p2 * (r * r + 2 * x * x)
    y_distorted = y * radial + p1 * (r * r + 2 * y * y) + 2 * p2 * x * y
    u_distorted = fx * x_distorted + cx
    v_distorted = fy * y_distorted + cy

    valid = (u_distorted >= 0) & (v_distorted >= 0) & (u_distorted < cols) & (v_distorted < rows)
    out = np.zeros_like(img)
    out[valid] = img[v_distorted[valid].astype(int), u_distorted[valid].astype(int)]
    return out


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="undistort", description="Undistort a grayscale image with fixed camera parameters."
    )
    parser.add_argument("image", nargs="?", default="./distorted.png", help="distorted input image")
    parser.add_argument("-o", "--output", default="undistorted.png", help="where to save the result")
    args = parser.parse_args(argv)

    try:
        with Image.open(args.image) as img:
            gray = np.asarray(img.convert("L"))
    except OSError:
        print(f"cannot read image {args.image}", file=sys.stderr)
        return 1

    Image.fromarray(undistort_image(gray)).save(args.output)
    print(f"undistorted image saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())