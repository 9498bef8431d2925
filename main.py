"""
Signal Pose AI - Real-time Lifesaving Signal Practice
=====================================================

6-Step Pipeline:
1. Frame Capture - Get frames from webcam/video/image
2. Pose Estimation - MediaPipe PoseLandmarker (or YOLOv8-Pose)
3. Arm Classification - raised / extended / at side / bent / unknown
4. Signal Catalog - Alternative definitions per signal
5. Signal Matching - Confidence + corrective feedback per frame
6. Temporal Confirmation - 5 qualifying polls confirm the signal

Usage:
    python main.py --signal "Remain Stationary"                  # Webcam
    python main.py --signal "Return to Shore" --video clip.mp4   # Video file
    python main.py --video clip.mp4 --loop                       # Replay a clip
    python main.py --image photo.jpg                             # Check all signals
    python main.py --list-signals

Controls:
    Q - Quit
    R - Restart confirmation
    N - Next signal
"""

import argparse
import logging
import time
from typing import Optional

import cv2

import config
from signal_pipeline.step1_frame_capture import ImageCapture, LatestFrameSource, VideoFileCapture, WebcamCapture
from signal_pipeline.step2_pose_estimation import PoseModelError, create_pose_model
from signal_pipeline.step4_signal_catalog import CatalogError, load_catalog
from signal_pipeline.step5_signal_matcher import SignalMatcher
from signal_pipeline.step6_confirmation import ConfirmationController, DetectionState
from utils.logger import setup_logging
from utils.visualization import draw_detection, draw_skeleton

logger = logging.getLogger(__name__)


class SignalPracticeApp:
    """Live signal practice: camera loop in the main thread, matching in the background."""

    def __init__(
        self,
        backend: str = config.POSE_BACKEND,
        model_path: Optional[str] = None,
        catalog_path: Optional[str] = config.CATALOG_PATH
    ):
        """
        Args:
            backend: Pose model backend ("mediapipe" or "yolo")
            model_path: Override of the backend's default model file
            catalog_path: YAML catalog (None = built-in signals)
        """
        print("Initializing Signal Pose Pipeline...")

        print("  [1/3] Loading signal catalog...")
        self.catalog = load_catalog(catalog_path)
        self.matcher = SignalMatcher(self.catalog)
        print(f"        {len(self.catalog)} detectable signals")

        print(f"  [2/3] Loading pose model ({backend})...")
        self.pose_model = create_pose_model(backend, model_path)
        self.controller = ConfirmationController(self.pose_model, matcher=self.matcher)
        self.controller.initialize()

        print("  [3/3] Ready!\n")

    def _on_match(self) -> None:
        print(f"\n*** Signal confirmed: {self.controller.signal_name} ***")
        print("Press R to try again, N for the next signal\n")

    def _next_signal(self, current: str) -> str:
        names = self.catalog.signal_names
        if current not in names:
            return names[0]
        return names[(names.index(current) + 1) % len(names)]

    def run_live(self, capture, signal_name: str) -> None:
        """Display loop; the controller polls the latest displayed frame."""
        latest = LatestFrameSource()
        print(f"Target signal: {signal_name}")
        print(f"  {self.catalog.description_for(signal_name)}")
        print("Press Q to quit, R to restart, N for next signal\n")

        self.controller.start(latest, signal_name, on_match=self._on_match)

        fps_start = time.time()
        frame_count = 0
        fps = 0.0

        try:
            while capture.is_opened():
                ret, frame = capture.read()
                if not ret:
                    break

                latest.put(frame)
                annotated = draw_detection(
                    frame, self.controller.snapshot(), self.controller.confirmation_frames, fps
                )
                cv2.imshow(config.WINDOW_NAME, annotated)

                # Calculate FPS
                frame_count += 1
                if frame_count % 30 == 0:
                    fps = 30 / (time.time() - fps_start)
                    fps_start = time.time()

                if self.controller.state is DetectionState.ERROR:
                    logger.error("Detection stopped with an error")
                    break

                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    break
                elif key == ord('r'):
                    self.controller.start(latest, signal_name, on_match=self._on_match)
                    print("Confirmation restarted")
                elif key == ord('n'):
                    signal_name = self._next_signal(signal_name)
                    print(f"Target signal: {signal_name}")
                    print(f"  {self.catalog.description_for(signal_name)}")
                    if self.controller.signal_name is None:
                        self.controller.start(latest, signal_name, on_match=self._on_match)
                    else:
                        self.controller.set_signal(signal_name)
        finally:
            self.controller.stop()
            latest.release()
            capture.release()
            cv2.destroyAllWindows()

    def run_image(self, image_path: str, signal_name: Optional[str] = None):
        """
        Check a single image against one signal (or every signal).

        Returns:
            Annotated image, or None if no person was found
        """
        with ImageCapture(image_path) as capture:
            _, image = capture.read()

        frame = self.pose_model.detect(image, 0)
        if frame is None:
            print("No pose detected")
            return None

        names = [signal_name] if signal_name else list(self.catalog.signal_names)
        for name in names:
            result = self.matcher.match(frame, name)
            status = "MATCH" if result.is_match else result.level.value
            print(f"{name:<30} {result.confidence * 100:5.1f}%  [{status}]")
            for hint in result.feedback:
                print(f"    - {hint}")

        return draw_skeleton(image, frame)

    def close(self):
        """Release resources."""
        self.controller.stop()
        self.pose_model.close()


def list_signals(catalog_path: Optional[str] = config.CATALOG_PATH) -> None:
    catalog = load_catalog(catalog_path)
    print("Detectable signals:")
    for name in catalog.signal_names:
        variants = len(catalog.definitions_for(name))
        print(f"  {name:<30} ({variants} variant{'s' if variants > 1 else ''})  {catalog.description_for(name)}")


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Signal Pose AI - Real-time Lifesaving Signal Practice',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Input source
    input_group = parser.add_mutually_exclusive_group()
    input_group.add_argument('--video', type=str, help='Path to video file')
    input_group.add_argument('--image', type=str, help='Path to image file')
    input_group.add_argument('--list-signals', action='store_true',
                             help='List detectable signals and exit')

    parser.add_argument('--signal', type=str, default=None,
                        help='Target signal name (default: first catalog signal)')
    parser.add_argument('--loop', action='store_true',
                        help='Replay the video file until Q is pressed')
    parser.add_argument('--camera', type=int, default=config.CAMERA_ID,
                        help='Camera ID for webcam mode')

    # Pipeline settings
    parser.add_argument('--backend', choices=['mediapipe', 'yolo'], default=config.POSE_BACKEND,
                        help='Pose estimation backend')
    parser.add_argument('--model-path', type=str, default=None,
                        help='Pose model file (backend default if omitted)')
    parser.add_argument('--catalog', type=str, default=config.CATALOG_PATH,
                        help='Signal catalog YAML (built-in signals if omitted)')
    parser.add_argument('--log-level', type=str, default=config.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level, config.LOG_FILE)

    if args.list_signals:
        list_signals(args.catalog)
        return 0

    try:
        app = SignalPracticeApp(
            backend=args.backend,
            model_path=args.model_path,
            catalog_path=args.catalog
        )
    except (PoseModelError, CatalogError) as exc:
        logger.error("%s", exc)
        return 1

    try:
        if args.image:
            annotated = app.run_image(args.image, args.signal)
            if annotated is not None:
                output_path = 'output_result.jpg'
                cv2.imwrite(output_path, annotated)
                print(f"\nSaved result to: {output_path}")
            return 0

        signal_name = args.signal or app.catalog.signal_names[0]
        if not app.catalog.is_detectable(signal_name):
            print(f"'{signal_name}' has no pose detection support. Use --list-signals.")
            return 1

        if args.video:
            capture = VideoFileCapture(args.video, loop=args.loop)
        else:
            capture = WebcamCapture(camera_id=args.camera)
        app.run_live(capture, signal_name)
    finally:
        app.close()

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
