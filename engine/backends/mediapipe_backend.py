"""
MediaPipe detector backend.

Face presence comes from MediaPipe FaceDetection (one detector per score
threshold, frame downscaled to the rung's input size). Landmarks come from
FaceMesh; expression probabilities are derived from mesh geometry with simple
heuristics, since MediaPipe ships no expression classifier.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..detector import FaceDetectorBackend, RawDetection
from ..exceptions import ResourceUnavailableError
from ..models import BoundingBox

logger = logging.getLogger(__name__)

# FaceMesh landmark indices
NOSE_TIP = 1
UPPER_LIP = 13
LOWER_LIP = 14
MOUTH_LEFT = 61
MOUTH_RIGHT = 291

MOUTH_OPEN_MIN = 0.04        # normalized lip gap that reads as an open mouth
SMILE_MIN = 0.01             # corners this far above lip centre read as a smile


def expressions_from_mesh(points: Sequence[Tuple[float, float]]) -> Dict[str, float]:
    """
    Estimate expression probabilities from normalized FaceMesh points.

    Args:
        points: (x, y) landmarks in [0, 1] image coordinates

    Returns:
        Mapping with happy, surprised and neutral probabilities
    """
    mouth_open = abs(points[LOWER_LIP][1] - points[UPPER_LIP][1])
    corners_y = (points[MOUTH_LEFT][1] + points[MOUTH_RIGHT][1]) / 2.0
    # Image y grows downward: raised corners give a negative indicator
    smile_indicator = corners_y - points[UPPER_LIP][1]

    happy = 0.0
    surprised = 0.0
    if smile_indicator < -SMILE_MIN and mouth_open < 0.05:
        happy = min(0.95, abs(smile_indicator) * 50)
    elif mouth_open > MOUTH_OPEN_MIN:
        surprised = min(0.9, mouth_open * 15)

    neutral = max(0.05, 1.0 - happy - surprised)
    return {"neutral": neutral, "happy": happy, "surprised": surprised}


class MediaPipeFaceBackend(FaceDetectorBackend):
    """FaceDetectorBackend on top of MediaPipe solutions."""

    midline_landmark_index = NOSE_TIP

    def __init__(self, model_selection: int = 0, refine_landmarks: bool = False):
        """
        Args:
            model_selection: 0 for short-range (webcam), 1 for full-range
            refine_landmarks: Enable FaceMesh iris refinement
        """
        self.model_selection = model_selection
        self.refine_landmarks = refine_landmarks

        self._mp = None
        self._detectors: Dict[float, object] = {}
        self._face_mesh = None
        self._lock = threading.Lock()

        # FaceMesh result cache for the last frame (expressions and landmarks share it)
        self._mesh_frame: Optional[np.ndarray] = None
        self._mesh_points: Optional[List[Tuple[float, float]]] = None

    def load(self) -> None:
        """
        Import MediaPipe and build the landmark model.

        Raises:
            ResourceUnavailableError: if MediaPipe is not available
        """
        if self._mp is not None:
            return
        try:
            import mediapipe as mp
        except ImportError as e:
            raise ResourceUnavailableError(f"MediaPipe not available: {e}") from e
        if not hasattr(mp, "solutions"):
            raise ResourceUnavailableError("Installed MediaPipe has no legacy solutions API")

        self._mp = mp
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=self.refine_landmarks,
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )
        logger.info("MediaPipe FaceMesh initialized successfully")

    def detect_at(self, frame: np.ndarray, input_size: int, score_threshold: float) -> Optional[RawDetection]:
        if frame is None or frame.size == 0:
            return None
        self.load()

        h, w = frame.shape[:2]
        scale = input_size / float(max(h, w))
        resized = frame
        if scale < 1.0:
            resized = cv2.resize(frame, (max(1, int(w * scale)), max(1, int(h * scale))), interpolation=cv2.INTER_AREA)
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

        with self._lock:
            result = self._detector_for(score_threshold).process(rgb)

        if not result.detections:
            return None

        best = max(result.detections, key=lambda d: d.score[0])
        bbox = best.location_data.relative_bounding_box
        box = BoundingBox(
            x=bbox.xmin * w,
            y=bbox.ymin * h,
            width=max(0.0, bbox.width * w),
            height=max(0.0, bbox.height * h),
        )
        return RawDetection(box=box, score=float(best.score[0]))

    def detect_expressions(self, frame: np.ndarray) -> Optional[Dict[str, float]]:
        points = self._mesh(frame)
        if points is None:
            return None
        return expressions_from_mesh(points)

    def detect_landmarks(self, frame: np.ndarray) -> Optional[List[Tuple[float, float]]]:
        points = self._mesh(frame)
        if points is None:
            return None
        h, w = frame.shape[:2]
        return [(x * w, y * h) for x, y in points]

    def _detector_for(self, score_threshold: float):
        detector = self._detectors.get(score_threshold)
        if detector is None:
            detector = self._mp.solutions.face_detection.FaceDetection(
                model_selection=self.model_selection,
                min_detection_confidence=score_threshold,
            )
            self._detectors[score_threshold] = detector
            logger.debug(f"FaceDetection created for threshold {score_threshold}")
        return detector

    def _mesh(self, frame: np.ndarray) -> Optional[List[Tuple[float, float]]]:
        self.load()
        with self._lock:
            if self._mesh_frame is frame:
                return self._mesh_points

            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self._face_mesh.process(rgb)
            points = None
            if results.multi_face_landmarks:
                landmarks = results.multi_face_landmarks[0].landmark
                points = [(lm.x, lm.y) for lm in landmarks]

            self._mesh_frame = frame
            self._mesh_points = points
            return points

    def get_name(self) -> str:
        return "mediapipe"

    def close(self) -> None:
        """Clean up resources."""
        with self._lock:
            for detector in self._detectors.values():
                detector.close()
            self._detectors.clear()
            if self._face_mesh:
                self._face_mesh.close()
                self._face_mesh = None
            self._mesh_frame = None
            self._mesh_points = None
            self._mp = None
        logger.info("MediaPipeFaceBackend closed")
