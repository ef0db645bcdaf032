# slamkit

Building blocks for visual SLAM, written with NumPy and SciPy.

## What is in the package

- `slamkit.lie`: the groups `SO3` and `SE3`. Both have `exp`, `log`, `hat`,
  `vee`, `inverse`, `unit_quaternion` and composition with `*`. Multiplying by
  a 3-vector or a 3 x N array transforms the points. `SE3` also has `matrix`,
  `matrix3x4`, `rotation_matrix` and `adjoint`. Its twists are ordered as
  (translation, rotation). The module also has the helpers
  `quaternion_to_matrix`, `matrix_to_quaternion`, `angle_axis_matrix`,
  `euler_angles_zyx` and `relative_point`.
- `slamkit.rotation`: `is_orthogonal` and `is_scaled_orthogonal_and_positive`
  check a matrix. `make_rotation_matrix` returns the rotation nearest to a
  square matrix, found by SVD.
- `slamkit.geometry`: the `Hyperplane` class (`normal . p + offset == 0`)
  together with conversions between poses and lines or planes:
  - `normal_from_so2`, `so2_from_normal`
  - `normal_from_so3`, `rotation_from_normal`, `so3_from_normal`
  - `line_from_se2`, `se2_from_line`
  - `plane_from_se3`, `se3_from_plane`
  - `make_hyperplane_unique`
- `slamkit.algorithm`:
  - `triangulation(poses, points)` does linear SVD triangulation. It returns
    the world point, or `None` when the solution is poor or degenerate.
  - `to_vec2` turns a point into a 2-vector.
- `slamkit.camera.Camera`: a pinhole camera with an extrinsic pose. It has
  `intrinsics()` and the conversions `world2camera`, `camera2world`,
  `camera2pixel`, `pixel2camera`, `world2pixel` and `pixel2world`.
- `slamkit.entities`:
  - `Feature` holds its frame and its map point by weak reference.
  - `Frame` has a thread-safe `pose`, `Frame.create()` and `set_keyframe()`;
    both assign ids in sequence.
  - `MapPoint` has `create()`, `add_observation`, `remove_observation` and
    `observations()`.
- `slamkit.slam_map.Map`: stores keyframes and landmarks. It keeps a sliding
  window of active keyframes, 7 by default. When the window is full it drops
  a keyframe close to the current one, or else the farthest one. `clean_map()`
  deactivates landmarks that are no longer observed.
- `slamkit.projection`: reprojection errors and Jacobians.
  - `PoseOnlyProjectionEdge` covers the case where only the pose varies.
  - `ProjectionEdge` covers pose and landmark together, with camera
    extrinsics.
  - `pose_plus` applies a left-multiplied pose update.
- `slamkit.pose_graph`: `PoseGraph` reads and writes the `VERTEX_SE3:QUAT` /
  `EDGE_SE3:QUAT` text format through `parse`, `load` and `dump`.
  `optimize(iterations)` runs Levenberg-Marquardt with poses updated in the
  Lie algebra, and vertex 0 is held fixed. `total_error()` gives the weighted
  squared error over all edges.
- `slamkit.trajectory`:
  - `parse_trajectory` and `read_trajectory` read lines of the form
    `time tx ty tz qx qy qz qw`.
  - `trajectory_rmse` computes the RMSE of `|log(Tgt^-1 * Test)|`.
- `slamkit.dense_mono`: monocular depth filtering on a known trajectory. It
  has:
  - epipolar search with NCC matching: `epipolar_search`, `ncc`,
    `bilinear_interpolate`;
  - Gaussian depth fusion: `update_depth_filter`, and `update` for a whole
    image;
  - `evaluate_depth`;
  - `read_dataset`.
- `slamkit.undistort.undistort_image`: removes radial-tangential distortion
  from a grayscale image, using nearest-neighbour lookup.
- `slamkit.pointcloud`:
  - `read_poses` reads camera poses.
  - `depth_to_pointcloud` builds a coloured cloud from an RGB-D pair.
  - `stereo_pointcloud` builds a cloud from a left image and its disparity
    map.
  - `voxel_filter` and `statistical_outlier_removal` filter a cloud.
  - `write_pcd` saves a cloud as binary PCD.
- `slamkit.config.Config`: `Config.from_file` reads a YAML parameter file,
  including a `%YAML:` header line and `!!opencv-matrix` nodes. `get(key)`
  returns a value.
- `slamkit.dataset`: `parse_calibration` builds four `Camera`s from a
  calibration file, with intrinsics halved. `Dataset(path)` reads a sequence
  laid out as `calib.txt`, `image_0/` and `image_1/`:
  - `init()` loads the calibration;
  - `camera(i)` returns a camera;
  - `next_frame()` returns a `Frame` with both images halved, or `None` when
    the images run out.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
import numpy as np
from slamkit.lie import SO3, SE3

rotation = SO3.exp(np.array([0.0, 0.0, np.pi / 2]))
print(rotation.log())

pose = SE3.exp(np.array([1e-4, 0.0, 0.0, 0.0, 0.0, 0.1]))
print(pose.matrix())
print(SE3.vee(SE3.hat(pose.log())))
print(pose * np.array([1.0, 0.0, 0.0]))
```

## Command-line tools

`slamkit-trajectory-error` compares an estimated trajectory with ground truth
and prints `RMSE = ...`. If only one file is given, it prints how many poses
that file holds. Without arguments it reads `groundtruth.txt` and
`estimated.txt`.

```
slamkit-trajectory-error groundtruth.txt estimated.txt
```

`slamkit-pose-graph` optimises a pose graph stored as g2o text. The result
goes to `result_lie.g2o` unless `-o` says otherwise. `-n` sets the number of
iterations, which defaults to 30.

```
slamkit-pose-graph sphere.g2o
```

`slamkit-dense-mono` estimates depth for the first image of a dataset. The
dataset directory holds
`first_200_frames_traj_over_table_input_sequence.txt`, `images/` and
`depthmaps/scene_000.depth`. The command prints the error against the
reference depth after each image. It writes the depth map, rounded to 8-bit,
to `depth.png` or to the path given with `-o`.

```
slamkit-dense-mono path/to/dataset
```

`slamkit-undistort` undistorts a grayscale image using fixed camera
parameters. The input defaults to `./distorted.png` and the output to
`undistorted.png`; `-o` changes the output path.

```
slamkit-undistort distorted.png
```

## What the package does not do

- It has no display or viewer. Trajectories, point clouds and images are not
  shown on screen; results go to files or to standard output.
- It does not run a complete stereo visual odometry loop. The map, frames,
  cameras, triangulation, dataset reader and reprojection edges are provided,
  but there is no feature detector, no optical-flow tracker and no
  tracking/optimisation thread that ties them together.
- It does not compute stereo disparity. `stereo_pointcloud` expects a
  disparity map that has already been computed.
- It has no place recognition or loop closure, and no occupancy octree or
  mesh reconstruction.