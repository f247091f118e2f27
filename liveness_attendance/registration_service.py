from datetime import datetime
from typing import Callable, Optional

import numpy as np

from .camera import CameraLease, CameraStream
from .config import CAMERA_INDEX
from .enrollment import EnrollmentAggregator
from .exceptions import AttendanceError, ModelNotReady
from .gateway import MatchGateway
from .logger import setup_logger
from .sampler import DescriptorSource, FrameSampler


class RegistrationService:
    def __init__(
        self,
        engine: DescriptorSource,
        gateway: MatchGateway,
        aggregator: Optional[EnrollmentAggregator] = None,
        lease: Optional[CameraLease] = None,
        camera_factory: Callable[[int], CameraStream] = CameraStream,
        camera_index: int = CAMERA_INDEX,
        wait: Optional[Callable[[float], bool]] = None,
    ):
        self.engine = engine
        self.gateway = gateway
        self.aggregator = aggregator or EnrollmentAggregator()
        self.lease = lease or CameraLease()
        self.camera_factory = camera_factory
        self.camera_index = camera_index
        self.wait = wait
        self.logger = setup_logger(self.__class__.__name__)

    def register(
        self,
        identity_id: str,
        display_name: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        role: str = "user",
        status: Optional[Callable[[str], None]] = None,
    ) -> np.ndarray:
        notify = status or (lambda _message: None)
        if not identity_id.strip():
            raise AttendanceError("identity_id cannot be empty.")
        if not display_name.strip():
            raise AttendanceError("display_name cannot be empty.")
        if not getattr(self.engine, "ready", False):
            raise ModelNotReady("Models still loading, please wait...")

        start_time = datetime.now()
        self.logger.info("Starting registration for %s (%s)", identity_id, display_name)

        with self.lease.acquire() as cancel_event:
            notify("Starting capture...")
            with self.camera_factory(self.camera_index) as camera:
                sampler = FrameSampler(camera, self.engine, cancel_event=cancel_event, wait=self.wait)
                descriptor = self.aggregator.capture(sampler, notify)

            self.gateway.register(
                identity_id=identity_id,
                display_name=display_name,
                descriptor=descriptor,
                email=email,
                password=password,
                role=role,
            )

        elapsed = (datetime.now() - start_time).total_seconds()
        self.logger.info("Identity %s registered in %.1fs", identity_id, elapsed)
        notify(f"Success! Registered {display_name} ({identity_id})")
        return descriptor

    def cancel(self) -> bool:
        cancelled = self.lease.cancel()
        if cancelled:
            self.logger.info("Registration cancelled")
        return cancelled
