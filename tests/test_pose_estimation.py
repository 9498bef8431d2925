"""
Tests for the frame data model and pose model adapters (no model files needed).
"""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from signal_pipeline.step2_pose_estimation import (
    COCO_TO_BODY_PART,
    NUM_LANDMARKS,
    BodyPart,
    Landmark,
    MediaPipePoseModel,
    PoseFrame,
    PoseModelError,
    YoloPoseModel,
    create_pose_model,
)


class TestPoseFrame:
    """33-landmark frame."""

    def test_body_part_enumeration(self):
        assert NUM_LANDMARKS == 33
        assert BodyPart.NOSE == 0
        assert BodyPart.LEFT_SHOULDER == 11
        assert BodyPart.RIGHT_WRIST == 16
        assert BodyPart.RIGHT_FOOT_INDEX == 32

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            PoseFrame([Landmark(0.5, 0.5)] * 17)
        with pytest.raises(ValueError):
            PoseFrame([])

    def test_indexing(self, base_pose):
        wrist = base_pose[BodyPart.LEFT_WRIST]
        assert (wrist.x, wrist.y) == (0.35, 0.6)
        assert base_pose[15] == wrist
        assert base_pose.part('left_wrist') == wrist
        assert base_pose.part(BodyPart.LEFT_WRIST) == wrist
        assert len(base_pose) == 33
        assert len(list(base_pose)) == 33

    def test_immutable_and_hashable(self, base_pose, make_pose):
        with pytest.raises(TypeError):
            base_pose[0] = Landmark(0.0, 0.0)
        assert base_pose == make_pose()
        assert hash(base_pose) == hash(make_pose())
        assert base_pose != make_pose(nose=(0.1, 0.1))

    def test_to_numpy(self, base_pose):
        array = base_pose.to_numpy()
        assert array.shape == (33, 4)
        np.testing.assert_allclose(array[BodyPart.NOSE], [0.5, 0.2, 0.0, 1.0])

    def test_landmark_defaults(self):
        lm = Landmark(0.1, 0.2)
        assert lm.z == 0.0
        assert lm.visibility == 0.0

    def test_from_landmarks(self):
        raw = [SimpleNamespace(x=0.1 * (i % 10), y=0.5, z=-0.2, visibility=0.9) for i in range(33)]
        raw[0] = SimpleNamespace(x=0.5, y=0.2, z=None, visibility=None)

        frame = PoseFrame.from_landmarks(raw)

        assert frame[BodyPart.NOSE] == Landmark(0.5, 0.2, 0.0, 0.0)
        assert frame[BodyPart.LEFT_EYE_INNER].visibility == pytest.approx(0.9)
        assert frame[BodyPart.LEFT_EYE_INNER].z == pytest.approx(-0.2)

    def test_from_coco_keypoints(self):
        keypoints = np.zeros((17, 3))
        keypoints[5] = [64, 48, 0.9]    # left shoulder
        keypoints[10] = [320, 240, 0.8]  # right wrist

        frame = PoseFrame.from_coco_keypoints(keypoints, width=640, height=480)

        assert frame[BodyPart.LEFT_SHOULDER] == Landmark(0.1, 0.1, 0.0, pytest.approx(0.9))
        assert frame[BodyPart.RIGHT_WRIST].x == pytest.approx(0.5)
        assert frame[BodyPart.RIGHT_WRIST].visibility == pytest.approx(0.8)
        # Slots COCO does not have stay invisible
        assert frame[BodyPart.LEFT_PINKY].visibility == 0.0
        assert frame[BodyPart.LEFT_HEEL].visibility == 0.0

    def test_coco_mapping_covers_arms(self):
        mapped = set(COCO_TO_BODY_PART.values())
        for part in ('SHOULDER', 'ELBOW', 'WRIST'):
            assert BodyPart[f'LEFT_{part}'] in mapped
            assert BodyPart[f'RIGHT_{part}'] in mapped
        assert len(COCO_TO_BODY_PART) == 17


class TestPoseModels:
    """Adapter behaviour that does not need a model file."""

    def test_create_pose_model(self):
        assert isinstance(create_pose_model("mediapipe"), MediaPipePoseModel)
        assert isinstance(create_pose_model("yolo", "yolov8n-pose.pt"), YoloPoseModel)
        assert create_pose_model("yolo", "yolov8n-pose.pt").model_path == "yolov8n-pose.pt"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_pose_model("openpose")

    def test_not_ready_until_initialized(self):
        image = np.zeros((48, 64, 3), dtype=np.uint8)
        for model in (MediaPipePoseModel(), YoloPoseModel()):
            assert not model.is_ready
            assert model.detect(image, 0) is None
            model.close()

    def test_existing_model_file_is_not_downloaded(self, tmp_path):
        model_file = tmp_path / "pose.task"
        model_file.write_bytes(b"model")
        model = MediaPipePoseModel(model_path=str(model_file), model_url="file:///nonexistent/pose.task")

        assert model._ensure_model_file() == model_file

    def test_failed_download(self, tmp_path):
        model_file = tmp_path / "models" / "pose.task"
        model = MediaPipePoseModel(
            model_path=str(model_file),
            model_url=(tmp_path / "nowhere" / "pose.task").as_uri(),
        )

        with pytest.raises(PoseModelError):
            model._ensure_model_file()
        assert not model_file.exists()
        assert list(model_file.parent.iterdir()) == []

    def test_malformed_url(self, tmp_path):
        model_file = tmp_path / "models" / "pose.task"
        model = MediaPipePoseModel(model_path=str(model_file), model_url="not-a-url")

        with pytest.raises(PoseModelError, match="not-a-url"):
            model.initialize()
        assert not model.is_ready
        assert not model_file.exists()

    def test_concurrent_initialize_loads_once(self, tmp_path):
        from mediapipe.tasks.python import vision as mp_vision

        model_file = tmp_path / "pose.task"
        model_file.write_bytes(b"model")
        model = MediaPipePoseModel(model_path=str(model_file))
        created = []

        def slow_create(options):
            created.append(options)
            time.sleep(0.05)
            return MagicMock()

        with patch.object(mp_vision.PoseLandmarker, "create_from_options", side_effect=slow_create):
            threads = [threading.Thread(target=model.initialize) for _ in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=5.0)

        assert len(created) == 1
        assert model.is_ready
        model.close()
        assert not model.is_ready

    def test_download_from_url(self, tmp_path):
        source = tmp_path / "remote.task"
        source.write_bytes(b"weights")
        model_file = tmp_path / "models" / "pose.task"
        model = MediaPipePoseModel(model_path=str(model_file), model_url=source.as_uri())

        assert model._ensure_model_file() == model_file
        assert model_file.read_bytes() == b"weights"
