"""Visual SLAM building blocks: SO(3)/SE(3), rotation and plane geometry, cameras,
triangulation, map entities, reprojection and pose-graph optimization, trajectory
error, dense monocular depth, undistortion, point clouds, configs and datasets."""

__version__ = "0.1.0"