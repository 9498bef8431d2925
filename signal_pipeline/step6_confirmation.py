"""
Step 6: Temporal Confirmation
Polls a frame source at a fixed cadence, matches every frame and fires a
single "matched" event once enough consecutive polls qualify.

Lifecycle:
    idle -> detecting <-> no_pose
    detecting -> matched  (terminal for the session, polling stops)
    idle/detecting -> error  (pose model not ready, frame source failure)

A bad frame decays the counter by one instead of resetting it, so one
blurred frame does not throw away a streak of good ones.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import config

from .step1_frame_capture import FrameSource
from .step2_pose_estimation import PoseFrame, PoseModel, PoseModelError
from .step5_signal_matcher import MatchResult, SignalMatcher

logger = logging.getLogger(__name__)

NO_POSE_FEEDBACK = "No pose detected - make sure you're visible in the camera"


class DetectionState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    DETECTING = "detecting"
    NO_POSE = "no_pose"
    MATCHED = "matched"
    ERROR = "error"


@dataclass
class ConfirmationState:
    """Counter state of one detection session."""
    signal_name: str
    frame_source: Optional[FrameSource] = None
    on_match: Optional[Callable[[], None]] = None
    confirmation_frames: int = config.MATCH_CONFIRMATION_FRAMES
    match_count: int = 0
    match_fired: bool = False

    def record(self, qualifying: bool) -> bool:
        """
        Count one polled frame.

        Args:
            qualifying: Whether the frame matched (or came close enough)

        Returns:
            True exactly once per session, on the poll that confirms the match
        """
        if qualifying:
            self.match_count += 1
        else:
            self.match_count = max(0, self.match_count - 1)

        if self.match_count >= self.confirmation_frames and not self.match_fired:
            self.match_fired = True
            return True
        return False

    def record_no_pose(self) -> None:
        self.match_count = 0


@dataclass(frozen=True)
class DetectionSnapshot:
    """What one poll observed, for overlays and progress gauges."""
    state: DetectionState
    signal_name: str
    frame: Optional[PoseFrame]
    match_result: Optional[MatchResult]
    confidence: float
    feedback: Tuple[str, ...]
    is_match: bool
    match_count: int
    timestamp_ms: int


class ConfirmationController:
    """
    Drive one detection session against a live frame source.

    The pose model is injected and must be initialized before start();
    the controller never owns its lifecycle. With background=False no
    thread is started and the caller drives polling through tick().
    """

    def __init__(
        self,
        pose_model: PoseModel,
        matcher: Optional[SignalMatcher] = None,
        interval_ms: int = config.DETECTION_INTERVAL_MS,
        confirmation_frames: int = config.MATCH_CONFIRMATION_FRAMES,
        on_update: Optional[Callable[[DetectionSnapshot], None]] = None,
        background: bool = True
    ):
        """
        Args:
            pose_model: External pose model adapter
            matcher: Signal matcher (default catalog if None)
            interval_ms: Poll cadence in milliseconds
            confirmation_frames: Qualifying polls needed to confirm a match
            on_update: Called with every published DetectionSnapshot
            background: Poll from a daemon thread
        """
        self.pose_model = pose_model
        self.matcher = matcher or SignalMatcher()
        self.interval_ms = interval_ms
        self.confirmation_frames = confirmation_frames
        self.on_update = on_update
        self.background = background

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._session: Optional[ConfirmationState] = None
        self._state = DetectionState.IDLE
        self._snapshot: Optional[DetectionSnapshot] = None
        self._last_timestamp_ms = -1

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self) -> bool:
        """
        Load the pose model (blocking, idempotent).

        Raises:
            PoseModelError: The model could not be loaded. No retry is attempted.
                Any other error raised by the adapter also leaves the
                controller in the error state and is re-raised unchanged.
        """
        with self._lock:
            if self._session is None:
                self._state = DetectionState.INITIALIZING

        try:
            self.pose_model.initialize()
        except Exception:
            with self._lock:
                self._state = DetectionState.ERROR
            logger.error("Pose model failed to initialize")
            raise

        with self._lock:
            if self._state is DetectionState.INITIALIZING:
                self._state = DetectionState.IDLE
        return True

    def start(
        self,
        frame_source: FrameSource,
        signal_name: str,
        on_match: Optional[Callable[[], None]] = None
    ) -> None:
        """Begin a fresh confirmation session, cancelling any running one."""
        if not self.pose_model.is_ready:
            with self._lock:
                self._state = DetectionState.ERROR
            raise PoseModelError("Pose model is not initialized; call initialize() first")

        self.stop()

        with self._lock:
            self._session = ConfirmationState(
                signal_name=signal_name,
                frame_source=frame_source,
                on_match=on_match,
                confirmation_frames=self.confirmation_frames,
            )
            self._state = DetectionState.DETECTING
            self._stop_event = threading.Event()

            if self.background:
                self._thread = threading.Thread(
                    target=self._poll_loop,
                    args=(self._stop_event,),
                    name="signal-confirmation",
                    daemon=True,
                )
                self._thread.start()

        logger.info("Detection started for '%s'", signal_name)

    def stop(self) -> None:
        """Cancel polling, drop the session and return to idle."""
        with self._lock:
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            session = self._session
            self._session = None
            self._snapshot = None
            self._state = DetectionState.IDLE

        # The match callback may call stop() from the polling thread itself
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

        if session is not None:
            logger.info("Detection stopped for '%s'", session.signal_name)

    def set_signal(self, signal_name: str) -> None:
        """Switch the target signal; counts restart from zero."""
        with self._lock:
            session = self._session
        if session is None or session.signal_name == signal_name:
            return

        logger.info("Target signal changed: '%s' -> '%s'", session.signal_name, signal_name)
        self.start(session.frame_source, signal_name, session.on_match)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DetectionState:
        with self._lock:
            return self._state

    @property
    def signal_name(self) -> Optional[str]:
        with self._lock:
            return self._session.signal_name if self._session else None

    @property
    def match_count(self) -> int:
        with self._lock:
            return self._session.match_count if self._session else 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._session is not None and self._state in (
                DetectionState.DETECTING, DetectionState.NO_POSE
            )

    def snapshot(self) -> Optional[DetectionSnapshot]:
        """Latest published poll result (None before the first poll)."""
        with self._lock:
            return self._snapshot

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    def tick(self) -> Optional[DetectionSnapshot]:
        """
        Run one poll.

        Returns:
            The published snapshot, or None if the poll was skipped (another
            poll in flight, no active session, no image available, or the
            session changed while the frame was being processed)
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous poll still running, tick skipped")
            return None
        try:
            return self._poll()
        finally:
            self._tick_lock.release()

    def _poll(self) -> Optional[DetectionSnapshot]:
        with self._lock:
            session = self._session
            if session is None or self._state not in (DetectionState.DETECTING, DetectionState.NO_POSE):
                return None

        ok, image = session.frame_source.read()
        if not ok or image is None:
            return None

        timestamp_ms = self._next_timestamp_ms()
        frame = self.pose_model.detect(image, timestamp_ms)
        result = self.matcher.match(frame, session.signal_name) if frame is not None else None

        confirmed = False
        with self._lock:
            if self._session is not session:
                logger.debug("Session replaced during poll, result discarded")
                return None

            if frame is None:
                session.record_no_pose()
                self._state = DetectionState.NO_POSE
                snapshot = DetectionSnapshot(
                    state=self._state,
                    signal_name=session.signal_name,
                    frame=None,
                    match_result=None,
                    confidence=0.0,
                    feedback=(NO_POSE_FEEDBACK,),
                    is_match=False,
                    match_count=0,
                    timestamp_ms=timestamp_ms,
                )
            else:
                qualifying = result.is_match or result.confidence >= config.MATCH_CONFIDENCE_THRESHOLD
                confirmed = session.record(qualifying)
                if confirmed:
                    self._state = DetectionState.MATCHED
                    self._stop_event.set()
                else:
                    self._state = DetectionState.DETECTING
                snapshot = DetectionSnapshot(
                    state=self._state,
                    signal_name=session.signal_name,
                    frame=frame,
                    match_result=result,
                    confidence=result.confidence,
                    feedback=tuple(result.feedback),
                    is_match=result.is_match,
                    match_count=session.match_count,
                    timestamp_ms=timestamp_ms,
                )
            self._snapshot = snapshot

        logger.debug(
            "Poll %s: state=%s confidence=%.2f count=%d",
            session.signal_name, snapshot.state.value, snapshot.confidence, snapshot.match_count
        )

        if self.on_update is not None:
            self.on_update(snapshot)

        if confirmed:
            logger.info("Signal '%s' confirmed", session.signal_name)
            if session.on_match is not None:
                session.on_match()

        return snapshot

    def _next_timestamp_ms(self) -> int:
        timestamp_ms = max(int(time.monotonic() * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    def _poll_loop(self, stop_event: threading.Event) -> None:
        """Fixed-cadence loop; deadlines missed by a slow poll are skipped, not queued."""
        interval = self.interval_ms / 1000.0
        deadline = time.monotonic()

        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                with self._lock:
                    current = self._stop_event is stop_event
                    # A failing on_match callback does not undo a confirmed match
                    matched = current and self._state is DetectionState.MATCHED
                    if current and not matched:
                        self._state = DetectionState.ERROR
                if matched:
                    logger.exception("Match callback failed")
                else:
                    logger.exception("Detection loop failed")
                return

            deadline += interval
            now = time.monotonic()
            if now > deadline:
                missed = int((now - deadline) / interval) + 1
                deadline += missed * interval
                logger.debug("Skipped %d poll(s)", missed)
            stop_event.wait(deadline - now)
