# services/client/main.py
import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import uvloop

from app.settings import settings
from core.enums import TrackerType
from core.models import ModelRequest
from infrastructure.capture.video_source import VideoSource
from infrastructure.external.model_api_client import ModelApiClient
from infrastructure.monitoring.metrics import setup_prometheus_metrics, update_prometheus_metrics
from services.client.tracking_session import TrackingSession
from services.overlay.canvas import draw_instructions
from shared.config.logging_config import configure_logging

WINDOW_NAME = "SmartCamera Tracking"


def parse_model_arg(value: str) -> ModelRequest:
    """'person_detection' hoặc 'person_detection:person,car' (class filter)"""
    name, _, classes = value.partition(':')
    class_filter = tuple(c.strip() for c in classes.split(',') if c.strip())
    return ModelRequest(name=name.strip(), class_filter=class_filter)


class TrackingClientApp:
    """Camera -> inference server -> overlay window"""

    def __init__(self, session: TrackingSession, show_window: bool = True, export_dir: Path = Path(".")):
        self.session = session
        self.show_window = show_window
        self.export_dir = export_dir
        self.logger = logging.getLogger("tracking_client")

        self.is_running = False
        self._shutdown_event = asyncio.Event()
        self._closed = False
        self._metrics_task: Optional[asyncio.Task] = None

    async def run(self, start_tracking: bool = False):
        self.logger.info(f"🚀 Starting {settings.app_name} -> {settings.ws_url}")
        self._setup_signal_handlers()

        if settings.enable_metrics:
            setup_prometheus_metrics(settings.app_name, settings.prometheus_port)
            self._metrics_task = asyncio.create_task(self._metrics_update_loop(), name="metrics_updater")

        self.session.events.on("error", lambda e: self.logger.warning(f"⚠️ {type(e).__name__}: {e}"))

        try:
            await self.session.start()
            self.is_running = True
            if start_tracking:
                await self.session.start_tracking()

            if self.show_window:
                await self._display_loop()
            else:
                await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        if self._closed:
            return
        self._closed = True
        self.is_running = False
        self._shutdown_event.set()

        if self._metrics_task and not self._metrics_task.done():
            self._metrics_task.cancel()
            try:
                await self._metrics_task
            except asyncio.CancelledError:
                pass

        await self.session.close()
        if self.show_window:
            cv2.destroyAllWindows()
        self.logger.info("✅ Tracking client shutdown completed")

    async def _display_loop(self):
        """Hiển thị frame mới nhất + overlay, xử lý phím tắt"""
        video = self.session.video_source
        while self.is_running and not self._shutdown_event.is_set():
            frame = video.latest_frame if video is not None else None
            if frame is not None:
                canvas = draw_instructions(frame.copy(), self.session.overlay)
                cv2.imshow(WINDOW_NAME, canvas)

            key = cv2.waitKey(1) & 0xFF
            if key == ord('q'):
                break
            await self._handle_key(key)
            await asyncio.sleep(0.03)

    async def _handle_key(self, key: int):
        if key == ord('t'):
            if self.session.router.tracking_requested:
                await self.session.stop_tracking()
            else:
                await self.session.start_tracking()
        elif key == ord('r'):
            await self.session.reset()
        elif key == ord('s'):
            await self.session.request_tracker_stats()
        elif key == ord('e'):
            self.export_state()

    def export_state(self) -> Path:
        state = self.session.export_state()
        path = self.export_dir / f"tracking-session-{state['timestamp'][:10]}.json"
        path.write_text(json.dumps(state, indent=2), encoding="utf-8")
        self.logger.info(f"💾 Session exported to {path}")
        return path

    async def _metrics_update_loop(self):
        """Periodically update Prometheus metrics"""
        while True:
            try:
                update_prometheus_metrics(settings.app_name, self.session.metrics)
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                break

    def _setup_signal_handlers(self):
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._shutdown_event.set)
        except (NotImplementedError, RuntimeError) as e:
            self.logger.warning(f"⚠️ Could not setup signal handlers: {e}")


async def list_model_classes(api_client: ModelApiClient, model_names: List[str]) -> Dict[str, Optional[List[str]]]:
    """Class labels per model; all models the server reports when no name is given"""
    if not model_names:
        model_names = [m.name for m in await api_client.list_models()]
    return {name: await api_client.get_model_classes(name) for name in model_names}


def print_model_classes(classes: Dict[str, Optional[List[str]]]) -> None:
    if not classes:
        print("No models available")
    for name, labels in classes.items():
        if labels is None:
            print(f"{name}: <unavailable>")
        else:
            print(f"{name}: {', '.join(labels)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream camera frames to the SmartCamera inference server")
    parser.add_argument("--ws-url", default=settings.ws_url, help="WebSocket endpoint")
    parser.add_argument("--api-url", default=settings.api_base_url, help="Model REST API base URL")
    parser.add_argument("--source", default=settings.streaming.camera_source,
                        help="Camera index or video file / stream URL")
    parser.add_argument("--model", "-m", dest="models", action="append", default=[],
                        help="Model to run, optionally with classes: name:cls1,cls2 (repeatable)")
    parser.add_argument("--tracking", action="store_true", help="Start tracking right after connecting")
    parser.add_argument("--list-classes", action="store_true",
                        help="Print the class labels of the selected models (or all models) and exit")
    parser.add_argument("--tracker", choices=[t.value for t in TrackerType], default=TrackerType.CENTROID.value)
    parser.add_argument("--no-window", action="store_true", help="Run without the OpenCV window")
    parser.add_argument("--debug", action="store_true")
    return parser


async def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(
        log_level="DEBUG" if args.debug else settings.log_level,
        log_format=settings.log_format,
        log_file_path=settings.log_file_path,
        log_max_size=settings.log_max_size,
        log_backup_count=settings.log_backup_count
    )
    logger = logging.getLogger("tracking_client_main")

    if args.list_classes:
        api_client = ModelApiClient(args.api_url, timeout=settings.api_timeout)
        names = [parse_model_arg(m).name for m in args.models]
        print_model_classes(await list_model_classes(api_client, names))
        return 0

    streaming = settings.streaming
    video = VideoSource(
        args.source,
        width=streaming.camera_width,
        height=streaming.camera_height,
        jpeg_quality=streaming.jpeg_quality
    )
    session = TrackingSession.from_settings(
        settings.model_copy(update={"ws_url": args.ws_url, "api_base_url": args.api_url.rstrip('/')}),
        video_source=video,
        models=[parse_model_arg(m) for m in args.models]
    )
    session.router.config = session.router.config.merged(tracker_type=args.tracker)

    app = TrackingClientApp(session, show_window=not args.no_window)
    try:
        await app.run(start_tracking=args.tracking)
    except Exception as e:
        logger.error(f"💥 Unhandled error in main: {e}", exc_info=True)
        return 1
    finally:
        logger.info("🏁 Tracking client main completed")
    return 0


def main():
    """Console script entry point"""
    try:
        uvloop.install()
    except RuntimeError as e:
        logging.warning(f"⚠️ Could not install uvloop: {e}")

    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        print("\n👋 Tracking client interrupted by user")


if __name__ == "__main__":
    main()
