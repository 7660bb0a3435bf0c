from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from statistics import mean
from typing import Dict, Iterator, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image
from tqdm import tqdm

from .pipeline import DEFAULT_MODELS_DIR, BackgroundFilter
from .settings import Device, ModelChoice, Settings

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".webp"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the background segmentation filter over a video or an image sequence.",
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Video file, or directory of frames processed in sorted order.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where RGBA cutouts (alpha = foreground) are written.",
    )
    parser.add_argument(
        "--models-dir",
        type=Path,
        default=DEFAULT_MODELS_DIR,
        help="Directory holding the ONNX model files.",
    )
    parser.add_argument(
        "--model",
        dest="model_select",
        default=ModelChoice.FAST.value,
        choices=[choice.value for choice in ModelChoice],
        help="Segmentation backend.",
    )
    parser.add_argument(
        "--device",
        dest="useGPU",
        default=Device.CPU.value,
        choices=[device.value for device in Device],
        help="Inference execution provider.",
    )
    parser.add_argument("--threads", dest="numThreads", type=int, default=1)
    parser.add_argument("--no-threshold", dest="enable_threshold", action="store_false")
    parser.add_argument("--threshold", type=float, default=0.5)
    parser.add_argument("--contour-filter", type=float, default=0.05)
    parser.add_argument("--smooth-contour", type=float, default=0.5)
    parser.add_argument("--feather", type=float, default=0.0)
    parser.add_argument(
        "--mask-every",
        dest="mask_every_x_frames",
        type=int,
        default=1,
        help="Recompute the mask every N frames.",
    )
    parser.add_argument("--temporal-smooth", dest="temporal_smooth_factor", type=float, default=0.85)
    parser.add_argument(
        "--no-similarity",
        dest="enable_image_similarity",
        action="store_false",
        help="Disable the PSNR similarity skip.",
    )
    parser.add_argument(
        "--similarity-threshold",
        dest="image_similarity_threshold",
        type=float,
        default=35.0,
        help="PSNR (dB) above which a frame counts as unchanged.",
    )
    parser.add_argument(
        "--blur-background",
        type=int,
        default=0,
        help="Background blur strength (0-20), passed through to the compositor.",
    )
    parser.add_argument("--focal-blur", dest="enable_focal_blur", action="store_true")
    parser.add_argument("--focus-point", dest="blur_focus_point", type=float, default=0.1)
    parser.add_argument("--focus-depth", dest="blur_focus_depth", type=float, default=0.1)
    parser.add_argument(
        "--json",
        dest="json_report",
        type=Path,
        default=None,
        help="Optional path to write a JSON timing report.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def iter_frames(source: Path) -> Iterator[Tuple[str, np.ndarray]]:
    """Yield ``(name, bgra_frame)`` pairs from a video file or an image directory."""
    if source.is_dir():
        for path in sorted(p for p in source.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS):
            with Image.open(path) as img:
                rgba = np.array(img.convert("RGBA"))
            yield path.stem, cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
        return

    capture = cv2.VideoCapture(source.as_posix())
    if not capture.isOpened():
        raise SystemExit(f"Could not open video {source}.")
    try:
        index = 0
        while True:
            ok, bgr = capture.read()
            if not ok:
                break
            yield f"{index:06d}", cv2.cvtColor(bgr, cv2.COLOR_BGR2BGRA)
            index += 1
    finally:
        capture.release()


def compose_cutout(frame_bgra: np.ndarray, mask: Optional[np.ndarray]) -> Image.Image:
    image = Image.fromarray(cv2.cvtColor(frame_bgra, cv2.COLOR_BGRA2RGB)).convert("RGBA")
    if mask is not None:
        image.putalpha(Image.fromarray(255 - mask))
    return image


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    source = args.input.expanduser()
    output_dir = args.output_dir.expanduser()
    if not source.exists():
        raise SystemExit(f"Input {source} does not exist.")
    output_dir.mkdir(parents=True, exist_ok=True)

    settings = Settings.from_dict(vars(args))
    bg_filter = BackgroundFilter(settings, models_dir=args.models_dir)
    if bg_filter.disabled:
        print(f"[!] Filter disabled ({bg_filter.last_error}); frames pass through unmodified.")

    timings: Dict[str, float] = {}
    inference_runs = 0
    for name, frame in tqdm(iter_frames(source), desc="Frames", unit="frame"):
        start = time.perf_counter()
        bg_filter.capture_frame(frame)
        if bg_filter.tick():
            inference_runs += 1
        timings[name] = time.perf_counter() - start
        compose_cutout(frame, bg_filter.current_mask()).save(output_dir / f"{name}.png")

    bg_filter.destroy()

    if not timings:
        print("    No frames processed.")
        return

    total_time = sum(timings.values())
    avg_time = mean(timings.values())
    print(
        f"    Processed {len(timings)} frames | {inference_runs} inference runs | "
        f"total {total_time:.2f}s | avg {avg_time:.4f}s"
    )

    if args.json_report:
        args.json_report.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "model": settings.model_select.value,
            "device": settings.use_gpu.value,
            "frames": len(timings),
            "inference_runs": inference_runs,
            "total_seconds": total_time,
            "avg_seconds": avg_time,
        }
        with args.json_report.open("w", encoding="utf-8") as handle:
            json.dump(report, handle, indent=2)
        print(f"[+] Wrote timing report to {args.json_report}")


if __name__ == "__main__":
    run()
