import gc

import numpy as np

from slamkit.entities import Feature, Frame, MapPoint
from slamkit.lie import SE3


def test_frame_ids_increase():
    a = Frame.create()
    b = Frame.create()
    assert b.id == a.id + 1


def test_set_keyframe_assigns_increasing_ids():
    a = Frame.create()
    b = Frame.create()
    assert not a.is_keyframe
    a.set_keyframe()
    b.set_keyframe()
    assert a.is_keyframe and b.is_keyframe
    assert b.keyframe_id == a.keyframe_id + 1


def test_frame_pose_round_trip():
    frame = Frame.create()
    pose = SE3(translation=[1.0, 2.0, 3.0])
    frame.pose = pose
    np.testing.assert_allclose(frame.pose.translation, [1.0, 2.0, 3.0])


def test_mappoint_ids_increase():
    a = MapPoint.create()
    b = MapPoint.create()
    assert b.id == a.id + 1


def test_mappoint_position_is_copied():
    point = MapPoint(5, [1.0, 2.0, 3.0])
    pos = point.position
    pos[0] = 100.0
    np.testing.assert_allclose(point.position, [1.0, 2.0, 3.0])
    point.position = [4.0, 5.0, 6.0]
    np.testing.assert_allclose(point.position, [4.0, 5.0, 6.0])


def test_feature_refers_to_frame():
    frame = Frame.create()
    feat = Feature(frame, (10.0, 20.0))
    assert feat.frame is frame
    assert feat.is_on_left_image
    np.testing.assert_allclose(feat.position, [10.0, 20.0])


def test_add_and_remove_observation():
    point = MapPoint.create()
    feat = Feature(None, (1.0, 1.0))
    feat.map_point = point
    point.add_observation(feat)
    assert point.observed_times == 1
    assert point.observations() == [feat]

    point.remove_observation(feat)
    assert point.observed_times == 0
    assert point.observations() == []
    assert feat.map_point is None


def test_remove_unknown_observation_is_ignored():
    point = MapPoint.create()
    known = Feature()
    point.add_observation(known)
    point.remove_observation(Feature())
    assert point.observed_times == 1
    assert point.observations() == [known]


def test_observations_skip_dead_features():
    point = MapPoint.create()
    feat = Feature()
    point.add_observation(feat)
    del feat
    gc.collect()
    assert point.observations() == []
    assert point.observed_times == 1


def test_feature_map_point_is_weak():
    feat = Feature()
    point = MapPoint.create()
    feat.map_point = point
    assert feat.map_point is point
    del point
    gc.collect()
    assert feat.map_point is None