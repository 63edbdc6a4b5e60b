"""
PixelDrift -- Feedback Ring
Keeps the last few rendered frames, downsampled, for the feedback_echo field.
"""

from collections import deque

import cv2
import numpy as np


class FeedbackRing:
    """Bounded ring of downsampled RGBA frames (oldest first).

    Args:
        capacity: Frames kept; older ones fall off.
        factor: Linear downsample factor (result is at least 1x1).
    """

    def __init__(self, capacity: int = 3, factor: int = 4):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self.factor = max(1, int(factor))
        self._frames = deque(maxlen=self.capacity)

    def push(self, frame: np.ndarray):
        h, w = frame.shape[:2]
        size = (max(1, w // self.factor), max(1, h // self.factor))
        small = cv2.resize(np.array(frame), size, interpolation=cv2.INTER_AREA)
        small.flags.writeable = False
        self._frames.append(small)

    def frames(self) -> tuple:
        """Snapshot of the stored frames, oldest first."""
        return tuple(self._frames)

    def clear(self):
        self._frames.clear()

    def __len__(self):
        return len(self._frames)
