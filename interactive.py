"""Interactive prompts: collect the same settings as the CLI, one question at a time."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Confirm, FloatPrompt, IntPrompt, Prompt

from cli import (
    DEFAULT_CRF,
    DEFAULT_PRESET,
    SUPPORTED_PRESETS,
    EnhanceConfig,
    default_output_path,
    percent_arg,
    scale_height_arg,
    validate_speed,
)
from filters import EnhancementRequest

console = Console()


def _prompt_optional(
    prompt: str,
    validator: Callable[[str], int],
    hint: str,
) -> Optional[int]:
    while True:
        raw = Prompt.ask(prompt, default="", show_default=False, console=console).strip()
        if not raw:
            return None
        try:
            return validator(raw)
        except argparse.ArgumentTypeError as exc:
            console.print(f"[red]Invalid value:[/] {exc}. {hint}")


def prompt_optional_pct(prompt: str) -> Optional[int]:
    return _prompt_optional(prompt, percent_arg, "Please enter 0-100 or leave blank.")


def prompt_optional_scale() -> Optional[int]:
    return _prompt_optional(
        "Output height (e.g., 720 or 480; blank=keep source)",
        scale_height_arg,
        "Please enter an even integer or leave blank.",
    )


def prompt_optional_path(prompt: str) -> Optional[str]:
    while True:
        raw = Prompt.ask(prompt, default="", show_default=False, console=console).strip()
        if not raw:
            return None
        path = Path(raw).expanduser()
        if path.exists():
            return str(path)
        console.print("Path not found. Leave blank to skip or enter a valid file path.")


def prompt_input_path() -> Path:
    while True:
        raw = Prompt.ask("Input video file path", console=console).strip()
        path = Path(raw).expanduser()
        if raw and path.exists():
            return path.resolve()
        console.print("Path not found, please try again.")


def interactive_config() -> EnhanceConfig:
    """Ask for every setting and return a validated EnhanceConfig."""
    console.print("[bold]Interactive Video Enhancer[/]")
    console.print("Press Enter to accept defaults or leave options unset.\n")

    input_video = prompt_input_path()

    speed = FloatPrompt.ask("Playback speed (1.0 = unchanged)", default=1.0, console=console)
    validate_speed(speed)

    default_out = default_output_path(input_video, speed)
    raw_out = Prompt.ask(
        f"Output file path [{default_out}]",
        default="",
        show_default=False,
        console=console,
    ).strip()
    output_video = Path(raw_out).expanduser().resolve() if raw_out else default_out.resolve()
    if output_video == input_video:
        raise ValueError("Output video path must be different from input video path.")

    denoise = prompt_optional_pct("Denoise (0-100, blank=skip)")
    scale_height = prompt_optional_scale()
    sharpen = prompt_optional_pct("Sharpen (0-100, blank=skip)")
    contrast = prompt_optional_pct("Contrast (0-100, blank=skip)")
    saturation = prompt_optional_pct("Saturation (0-100, blank=skip)")
    brightness = prompt_optional_pct("Brightness (0-100, blank=skip)")

    while True:
        crf = IntPrompt.ask(
            f"CRF ({DEFAULT_CRF} default, used if re-encoding)",
            default=DEFAULT_CRF,
            console=console,
        )
        if 0 <= crf <= 51:
            break
        console.print("CRF must be between 0 and 51.")
    preset = Prompt.ask(
        "x264 preset",
        choices=list(SUPPORTED_PRESETS),
        default=DEFAULT_PRESET,
        console=console,
    )
    while True:
        threads = IntPrompt.ask("Threads (0 = ffmpeg auto)", default=0, console=console)
        if threads >= 0:
            break
        console.print("Threads must be >= 0.")

    verbose = Confirm.ask("Show ffmpeg logs?", default=False, console=console)

    ffmpeg_path = prompt_optional_path("Custom ffmpeg path (blank = PATH)")
    ffprobe_path = prompt_optional_path("Custom ffprobe path (blank = PATH)")

    return EnhanceConfig(
        input_video=input_video,
        output_video=output_video,
        request=EnhancementRequest(
            speed=speed,
            denoise=denoise,
            sharpen=sharpen,
            contrast=contrast,
            saturation=saturation,
            brightness=brightness,
            scale_height=scale_height,
        ),
        crf=crf,
        preset=preset,
        threads=threads,
        verbose=verbose,
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
    )
