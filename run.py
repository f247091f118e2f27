import argparse
import sys
from datetime import date
from pathlib import Path

from liveness_attendance.attendance_service import AttendanceService
from liveness_attendance.camera import CameraLease
from liveness_attendance.config import CAMERA_INDEX, GATEWAY_BASE_URL, LIVENESS_MODE
from liveness_attendance.exceptions import AttendanceError, GatewayConflict
from liveness_attendance.face_engine import FaceEngine
from liveness_attendance.gateway import MatchGateway
from liveness_attendance.liveness import LivenessVerifier
from liveness_attendance.logger import setup_logger
from liveness_attendance.registration_service import RegistrationService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Liveness-checked face registration and attendance"
    )
    parser.add_argument("--gateway", default=GATEWAY_BASE_URL, help="Match gateway base URL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    register = subparsers.add_parser("register", help="Enroll a new identity from the webcam")
    register.add_argument("--id", required=True, dest="identity_id", help="User ID, e.g. emp001")
    register.add_argument("--name", required=True, help="Display name")
    register.add_argument("--email", default=None, help="Optional login email")
    register.add_argument("--password", default=None, help="Optional login password")
    register.add_argument("--role", default="user", help="Role stored with the identity")
    register.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Webcam index")

    attend = subparsers.add_parser("attend", help="Run a liveness check and mark attendance")
    attend.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Webcam index")
    attend.add_argument(
        "--mode",
        choices=("full", "quick"),
        default=LIVENESS_MODE,
        help="Liveness mode (quick skips the challenges, for testing only)",
    )

    export = subparsers.add_parser("export", help="Download attendance as CSV")
    export.add_argument("--start", type=date.fromisoformat, default=None, help="Start date (YYYY-MM-DD)")
    export.add_argument("--end", type=date.fromisoformat, default=None, help="End date (YYYY-MM-DD)")
    export.add_argument("--output", type=Path, default=Path("attendance.csv"), help="CSV output path")

    subparsers.add_parser("health", help="Check that the match gateway is reachable")

    return parser


def _ask_confirmation(name: str, identity_id: str, confidence: float) -> bool:
    answer = input(f"Is this the correct user? {name} ({identity_id}), confidence {confidence:.2f} [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def _conflict_message(exc: GatewayConflict, identity_id: str) -> str:
    if exc.kind == GatewayConflict.DUPLICATE_IDENTITY:
        return f'User ID already taken! "{identity_id}" is registered to {exc.existing_display_name}'
    if exc.kind == GatewayConflict.DUPLICATE_FACE:
        return (
            f"Face already registered! This face belongs to "
            f"{exc.existing_display_name} ({exc.existing_identity_id})"
        )
    return str(exc)


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logger = setup_logger("main")
    gateway = MatchGateway(base_url=args.gateway)

    try:
        if args.command == "health":
            healthy = gateway.health()
            print("Gateway is reachable." if healthy else "Gateway is not reachable.")
            return 0 if healthy else 1

        if args.command == "export":
            csv_text = gateway.export_attendance(start_date=args.start, end_date=args.end)
            args.output.write_text(csv_text, encoding="utf-8")
            print(f"Attendance exported to {args.output}")
            return 0

        engine = FaceEngine()
        engine.load()
        lease = CameraLease()

        try:
            if args.command == "register":
                service = RegistrationService(engine=engine, gateway=gateway, lease=lease, camera_index=args.camera)
                try:
                    service.register(
                        identity_id=args.identity_id,
                        display_name=args.name,
                        email=args.email,
                        password=args.password,
                        role=args.role,
                        status=print,
                    )
                except GatewayConflict as exc:
                    print(_conflict_message(exc, args.identity_id))
                    return 1
                return 0

            if args.command == "attend":
                service = AttendanceService(
                    engine=engine,
                    gateway=gateway,
                    verifier=LivenessVerifier(mode=args.mode),
                    lease=lease,
                    camera_index=args.camera,
                )
                result = service.attempt(status=print)
                if not result.pending:
                    return 1

                candidate = result.match
                if _ask_confirmation(candidate.display_name, candidate.identity_id, candidate.confidence):
                    record = service.confirm()
                    print(f"Attendance confirmed for {record.display_name}!")
                    return 0

                service.reject()
                print("Attendance rejected. Ready to try again.")
                return 1
        finally:
            engine.close()

    except AttendanceError as exc:
        logger.error("Application error: %s", exc)
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"Unexpected error: {exc}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
