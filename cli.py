"""CLI: argument parsing, quality profiles, and runtime validation."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from filters import EnhancementRequest, format_factor

# ── Constants ──────────────────────────────────────────────────────────────────

DEFAULT_CRF = 17
DEFAULT_PRESET = "slow"
QUALITY_PROFILES = ("custom", "fast", "max_quality")
SUPPORTED_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)
PERCENT_KNOBS = ("denoise", "sharpen", "contrast", "saturation", "brightness")


@dataclass(frozen=True)
class EnhanceConfig:
    input_video: Path
    output_video: Path
    request: EnhancementRequest
    crf: int = DEFAULT_CRF
    preset: str = DEFAULT_PRESET
    threads: int = 0
    verbose: bool = False
    dry_run: bool = False
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None


# ── Functions ──────────────────────────────────────────────────────────────────


def _is_plain_digits(raw: str) -> bool:
    # Rejects signs, whitespace and underscores that int() would accept.
    return raw.isascii() and raw.isdigit()


def percent_arg(raw: str) -> int:
    """argparse type for 0..100 knobs (50 = unchanged)."""
    if not _is_plain_digits(raw):
        raise argparse.ArgumentTypeError(f"`{raw}` must be an integer between 0 and 100")
    value = int(raw)
    if value < 0 or value > 100:
        raise argparse.ArgumentTypeError("value must be between 0 and 100")
    return value


def scale_height_arg(raw: str) -> int:
    """argparse type for the output height; must be a positive even integer."""
    if not _is_plain_digits(raw):
        raise argparse.ArgumentTypeError(f"`{raw}` must be a positive even integer")
    value = int(raw)
    if value <= 0 or value % 2 != 0:
        raise argparse.ArgumentTypeError(
            "scale height must be a positive even integer (e.g., 720, 480)"
        )
    return value


def parse_cli_overrides(argv: Sequence[str]) -> set[str]:
    """Return canonical option names explicitly provided by the caller."""
    option_to_key = {
        "--profile": "profile",
        "--crf": "crf",
        "--preset": "preset",
    }

    overrides: set[str] = set()
    for token in argv:
        if not token.startswith("-"):
            continue
        option = token.split("=", maxsplit=1)[0]
        key = option_to_key.get(option)
        if key:
            overrides.add(key)
    return overrides


def apply_quality_profile(args: argparse.Namespace, cli_overrides: set[str]) -> None:
    """Apply quality profile defaults unless overridden by explicit flags."""
    if args.profile == "fast":
        profile_defaults: dict[str, object] = {"crf": 23, "preset": "veryfast"}
    elif args.profile == "max_quality":
        profile_defaults = {"crf": 14, "preset": "veryslow"}
    else:
        return

    for key, value in profile_defaults.items():
        if key not in cli_overrides:
            setattr(args, key, value)


def default_output_path(input_video: Path, speed: float) -> Path:
    stem = input_video.stem or "output"
    return input_video.parent / f"{stem}_enhanced_speed{format_factor(speed)}.mp4"


def resolve_output_path(input_video: Path, output_arg: Optional[str], speed: float) -> Path:
    if output_arg:
        return Path(output_arg).expanduser().resolve()
    return default_output_path(input_video, speed).resolve()


def validate_speed(speed: float) -> None:
    if not math.isfinite(speed) or speed <= 0:
        raise ValueError("Speed must be > 0.0")


def validate_runtime_args(args: argparse.Namespace) -> None:
    validate_speed(args.speed)
    if args.crf < 0 or args.crf > 51:
        raise ValueError("CRF must be between 0 and 51.")
    if args.threads < 0:
        raise ValueError("Threads must be >= 0.")


def build_request(args: argparse.Namespace) -> EnhancementRequest:
    return EnhancementRequest(
        speed=args.speed,
        denoise=args.denoise,
        sharpen=args.sharpen,
        contrast=args.contrast,
        saturation=args.saturation,
        brightness=args.brightness,
        scale_height=args.scale,
    )


def build_config(args: argparse.Namespace) -> EnhanceConfig:
    """Validate parsed arguments and resolve paths into an EnhanceConfig."""
    validate_runtime_args(args)

    input_video = Path(args.input_video).expanduser().resolve()
    if not input_video.exists():
        raise FileNotFoundError(f"Input not found: {input_video}")

    output_video = resolve_output_path(input_video, args.output, args.speed)
    if output_video == input_video:
        raise ValueError("Output video path must be different from input video path.")

    return EnhanceConfig(
        input_video=input_video,
        output_video=output_video,
        request=build_request(args),
        crf=args.crf,
        preset=args.preset,
        threads=args.threads,
        verbose=args.verbose,
        dry_run=args.dry_run,
        ffmpeg_path=args.ffmpeg,
        ffprobe_path=args.ffprobe,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="enhance-video",
        description="Enhance video (optional), change speed, and show a progress UI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("input_video", type=str, nargs="?", default=None, help="Input video file")
    parser.add_argument(
        "-i",
        "--input",
        dest="input_flag",
        type=str,
        default=None,
        help="Input video file (alternative to the positional argument)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output file (default: <input>_enhanced_speed<S>.mp4)",
    )
    parser.add_argument(
        "-s",
        "--speed",
        type=float,
        default=1.0,
        help="Playback speed factor (1.0 means unchanged)",
    )
    parser.add_argument(
        "--profile",
        type=str,
        choices=QUALITY_PROFILES,
        default="custom",
        help="Quality profile defaults for --crf/--preset",
    )
    parser.add_argument(
        "--crf",
        type=int,
        default=DEFAULT_CRF,
        help="x264 CRF (0-51, used only if video is re-encoded)",
    )
    parser.add_argument(
        "--preset",
        type=str,
        default=DEFAULT_PRESET,
        choices=SUPPORTED_PRESETS,
        help="x264 preset (used only if video is re-encoded)",
    )
    parser.add_argument(
        "--denoise",
        type=percent_arg,
        default=None,
        help="Denoise 0..100 (50 = unchanged; <=50 off; >50 more denoise)",
    )
    parser.add_argument(
        "--scale",
        type=scale_height_arg,
        default=None,
        help="Output height (e.g., 720, 480). Width keeps aspect. Must be even.",
    )
    parser.add_argument(
        "--sharpen",
        type=percent_arg,
        default=None,
        help="Sharpen 0..100 (50 = unchanged; <50 blur; >50 sharpen)",
    )
    parser.add_argument(
        "--contrast",
        type=percent_arg,
        default=None,
        help="Contrast 0..100 (50 = unchanged)",
    )
    parser.add_argument(
        "--saturation",
        type=percent_arg,
        default=None,
        help="Saturation 0..100 (50 = unchanged)",
    )
    parser.add_argument(
        "--brightness",
        type=percent_arg,
        default=None,
        help="Brightness 0..100 (50 = unchanged; 0 darkest; 100 lightest)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show raw ffmpeg logs (useful for debugging)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=0,
        help="Threads to allow ffmpeg (0 = auto)",
    )
    parser.add_argument(
        "--ffmpeg",
        type=str,
        default=None,
        help="Path to ffmpeg binary (overrides PATH lookup)",
    )
    parser.add_argument(
        "--ffprobe",
        type=str,
        default=None,
        help="Path to ffprobe binary (overrides PATH lookup)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")

    args = parser.parse_args(argv)
    if args.input_video and args.input_flag and args.input_video != args.input_flag:
        parser.error("input given both positionally and with --input")
    args.input_video = args.input_video or args.input_flag
    if not args.input_video:
        parser.error("an input video is required")
    return args
