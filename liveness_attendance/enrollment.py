from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .config import ENROLLMENT_NORMALIZE, ENROLLMENT_PAUSE_MS, ENROLLMENT_SAMPLES
from .exceptions import EnrollmentError
from .logger import setup_logger
from .sampler import FrameSampler
from .signals import average_descriptors


@dataclass
class EnrollmentSession:
    target_count: int
    descriptors: List[np.ndarray] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return len(self.descriptors) == self.target_count

    def result(self, normalize: bool = False) -> np.ndarray:
        if not self.complete:
            raise EnrollmentError(
                f"Enrollment needs {self.target_count} descriptors, captured {len(self.descriptors)}."
            )
        return average_descriptors(self.descriptors, normalize=normalize)


class EnrollmentAggregator:
    def __init__(
        self,
        target_count: int = ENROLLMENT_SAMPLES,
        pause_ms: int = ENROLLMENT_PAUSE_MS,
        normalize: bool = ENROLLMENT_NORMALIZE,
    ):
        if target_count < 1:
            raise EnrollmentError("target_count should be at least 1.")
        self.target_count = target_count
        self.pause_ms = pause_ms
        self.normalize = normalize
        self.logger = setup_logger(self.__class__.__name__)

    def capture(self, sampler: FrameSampler, status: Optional[Callable[[str], None]] = None) -> np.ndarray:
        """Capture ``target_count`` descriptors and return their mean.

        A capture without a face aborts the whole session; nothing captured so
        far is returned.
        """
        notify = status or (lambda _message: None)
        session = EnrollmentSession(target_count=self.target_count)
        try:
            for index in range(1, self.target_count + 1):
                sampler.pause(self.pause_ms)
                notify(f"Capturing frame {index}/{self.target_count}... Look at the camera!")
                sample = next(iter(sampler.sample(1, 0)))
                if sample.descriptor is None:
                    raise EnrollmentError(f"Failed to detect face in frame {index}. Please try again.")
                session.descriptors.append(sample.descriptor)

            notify("Processing embeddings...")
            descriptor = session.result(normalize=self.normalize)
        finally:
            session.descriptors.clear()

        self.logger.info(
            "Enrollment aggregated %d descriptors of dimension %d",
            self.target_count,
            descriptor.size,
        )
        return descriptor
