# -- coding: utf-8 --

import argparse
import logging
import os
import signal
import threading
import time

import cv2

from camera import build_camera_configs, create_camera
from camera.mock import imread_any
from camera.source import FrameSource
from core.config import ConfigError, load_config, validate_config
from core.errors import CameraError
from core.overlay_store import OverlayStore
from core.station import InspectionStation, StationInspection
from detect import create_detector_from_loaded_config, draw_defects, encode_image_jpeg


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="PCB optical inspection runtime (config-driven)",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    sub = p.add_subparsers(dest="command")
    sub.add_parser("cameras", help="List local cameras plus the network entry")
    insp = sub.add_parser("inspect", help="Inspect a board image file")
    insp.add_argument("--image", required=True, help="Board image path")
    insp.add_argument("--out", default="", help="Write the defect overlay (JPEG) here")
    sub.add_parser("run", help="Connect cameras, stream, inspect camera 1 periodically")
    args = p.parse_args(argv)
    if not args.command:
        args.command = "run"
    return args


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level,
        format="%(asctime)sZ [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    if int(getattr(cfg.runtime, "opencv_num_threads", 0)) > 0:
        cv2.setNumThreads(int(cfg.runtime.opencv_num_threads))
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, getattr(cfg.runtime, "log_level", "info"))

    try:
        _validate_config(cfg)
        detector = create_detector_from_loaded_config(cfg)
    except (ConfigError, ValueError) as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e

    logging.info(
        "Config files: main=%s detect=%s",
        cfg.paths.get("main"),
        cfg.paths.get("detect"),
    )
    if args.command == "cameras":
        return _cmd_cameras(cfg)
    if args.command == "inspect":
        return _cmd_inspect(detector, args.image, args.out, cfg.detect.line_width)
    return _cmd_run(cfg, detector)


def _cmd_cameras(cfg) -> int:
    cam_cfg = build_camera_configs(cfg.camera)[0]
    source = FrameSource(create_camera(cfg.camera.type, cam_cfg), cam_cfg, name="probe")
    for info in source.enumerate_cameras():
        print(f"{info.index:>3}  {info.display_name}")
    return 0


def _cmd_inspect(detector, image_path: str, out_path: str, line_width: int) -> int:
    img = imread_any(image_path)
    if img is None:
        logging.error("Cannot read image: %s", image_path)
        return 1
    result = detector.inspect(img)
    if not result.success:
        logging.error("%s", result.message)
        return 1
    logging.info("%s (%.1f ms)", result.message, result.processing_ms)
    for d in result.defects:
        print(
            f"{d.severity.name:<8} {d.type.value:<16} "
            f"conf={d.confidence:.2f} at ({d.location.x},{d.location.y}) {d.description}"
        )
    if out_path:
        overlay = draw_defects(img, result.defects, line_width=line_width)
        data, _ = encode_image_jpeg(overlay)
        out_dir = os.path.dirname(os.path.abspath(out_path))
        os.makedirs(out_dir, exist_ok=True)
        with open(out_path, "wb") as f:
            f.write(data)
        logging.info("Overlay written: %s", out_path)
    return 0


def _install_stop_signal(station: InspectionStation):
    """Route SIGTERM to `station.request_stop`; returns the previous handler.

    Returns None when not called from the main thread (signals unavailable).
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def _on_sigterm(signum, frame):
        logging.info("SIGTERM received; stopping")
        # Event.set may block if the signal lands inside Event.wait on this thread.
        threading.Thread(target=station.request_stop, daemon=True).start()

    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    return signal.SIG_DFL if previous is None else previous


def _cmd_run(cfg, detector) -> int:
    station = InspectionStation.from_loaded_config(cfg, detector)
    store = None
    if cfg.detect.preview_enabled:
        store = OverlayStore(os.path.join(cfg.runtime.save_dir, "overlays"))

    def on_result(inspection: StationInspection):
        result = inspection.result
        if not result.success:
            logging.warning("%s", result.message)
            return
        logging.info("%s (%.1f ms)", result.message, result.processing_ms)
        if store is not None and inspection.overlay is not None and result.has_defects:
            data, _ = encode_image_jpeg(inspection.overlay)
            store.save(data, camera=inspection.camera, ts_utc=inspection.captured_at)

    logging.info(
        "Starting: camera=%s targets=%s runtime=%s",
        cfg.camera.type,
        cfg.camera.targets,
        f"{cfg.runtime.max_runtime_s}s" if cfg.runtime.max_runtime_s else "unlimited",
    )
    previous_sigterm = _install_stop_signal(station)
    try:
        results = station.connect_all()
        if not results[0]:
            logging.error("Camera 1 unavailable: %s", results[0].last_error)
            return 1
        station.start_all_streams()
        station.run(
            interval_ms=cfg.runtime.inspect_interval_ms,
            runtime_limit_s=cfg.runtime.max_runtime_s
            if cfg.runtime.max_runtime_s > 0
            else None,
            on_result=on_result,
        )
        logging.info("Done: %s", station.status())
    except KeyboardInterrupt:
        logging.info("Service STOPPED by user (Ctrl+C)")
    except CameraError as e:
        logging.error("Camera failure: %s", e)
        return 1
    finally:
        station.disconnect_all()
        if previous_sigterm is not None:
            signal.signal(signal.SIGTERM, previous_sigterm)
    return 0


def _validate_config(cfg):
    validate_config(cfg)


if __name__ == "__main__":
    raise SystemExit(main())
