"""Filters: map enhancement knobs and speed to ffmpeg filter expressions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

# ── Constants ──────────────────────────────────────────────────────────────────

NEUTRAL_PERCENT = 50

BRIGHTNESS_MAX = 0.25
CONTRAST_SPAN = 0.25
SATURATION_SPAN = 0.25
SHARPEN_MAX = 1.0
SHARPEN_MATRIX_SIZE = 7
DENOISE_LUMA_MAX = 1.8
DENOISE_TEMPORAL_MAX = 9.0

VIDEO_SPEED_TOLERANCE = 0.0005
AUDIO_SPEED_TOLERANCE = 0.001
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0

AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"
AUDIO_COPY_ARGS = ("-c:a", "copy")
AUDIO_ENCODE_ARGS = ("-c:a", AUDIO_CODEC, "-b:a", AUDIO_BITRATE)


# ── Data model ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EnhancementRequest:
    speed: float = 1.0
    denoise: Optional[int] = None
    sharpen: Optional[int] = None
    contrast: Optional[int] = None
    saturation: Optional[int] = None
    brightness: Optional[int] = None
    scale_height: Optional[int] = None


@dataclass(frozen=True)
class AudioPlan:
    filters: Optional[str]
    codec_args: tuple[str, ...]

    @property
    def touches_audio(self) -> bool:
        return self.filters is not None


@dataclass(frozen=True)
class FilterGraph:
    video_stages: tuple[str, ...]
    audio: AudioPlan

    @property
    def video_filter(self) -> str:
        """Comma-joined video graph; empty means the video stream is copied."""
        return ",".join(self.video_stages)

    @property
    def reencodes_video(self) -> bool:
        return bool(self.video_stages)


# ── Functions ──────────────────────────────────────────────────────────────────


def pct_center_norm(pct: int) -> float:
    """Map a 0..100 knob onto -1..1 with 50 as the neutral point."""
    return (float(pct) - NEUTRAL_PERCENT) / NEUTRAL_PERCENT


def format_factor(value: float) -> str:
    """Render a float the short way: 1.25 -> '1.25', 2.0 -> '2', 1e-05 -> '0.00001'."""
    text = format(Decimal(repr(float(value))), "f")
    if text.endswith(".0"):
        return text[:-2]
    return text


def _denoise_stage(pct: int) -> Optional[str]:
    # Below-neutral values clamp to a no-op.
    norm = max(0.0, pct_center_norm(pct))
    if norm <= 0.0:
        return None
    luma = DENOISE_LUMA_MAX * norm
    temporal = DENOISE_TEMPORAL_MAX * norm
    return f"hqdn3d={luma:.3f}:{luma:.3f}:{temporal:.3f}:{temporal:.3f}"


def _sharpen_stage(pct: int) -> Optional[str]:
    amount = pct_center_norm(pct) * SHARPEN_MAX
    if abs(amount) <= 1e-6:
        return None
    size = SHARPEN_MATRIX_SIZE
    return f"unsharp=luma_msize_x={size}:luma_msize_y={size}:luma_amount={amount:.3f}"


def _eq_stage(
    contrast: Optional[int],
    saturation: Optional[int],
    brightness: Optional[int],
) -> Optional[str]:
    need_eq = False
    eq_contrast = 1.0
    eq_saturation = 1.0
    eq_brightness = 0.0

    if contrast is not None:
        mult = 1.0 + pct_center_norm(contrast) * CONTRAST_SPAN
        if abs(mult - 1.0) > 1e-6:
            need_eq = True
            eq_contrast = mult
    if saturation is not None:
        mult = 1.0 + pct_center_norm(saturation) * SATURATION_SPAN
        if abs(mult - 1.0) > 1e-6:
            need_eq = True
            eq_saturation = mult
    if brightness is not None:
        offset = pct_center_norm(brightness) * BRIGHTNESS_MAX
        if abs(offset) > 1e-6:
            need_eq = True
            eq_brightness = offset

    if not need_eq:
        return None
    return (
        f"eq=contrast={eq_contrast:.6f}"
        f":saturation={eq_saturation:.6f}"
        f":brightness={eq_brightness:.6f}"
    )


def build_video_stages(request: EnhancementRequest) -> list[str]:
    """Return video filter stages in their fixed application order.

    Order: denoise, sharpen, eq, scale, then the setpts retime.
    """
    stages: list[str] = []

    if request.denoise is not None:
        stage = _denoise_stage(request.denoise)
        if stage:
            stages.append(stage)

    if request.sharpen is not None:
        stage = _sharpen_stage(request.sharpen)
        if stage:
            stages.append(stage)

    eq = _eq_stage(request.contrast, request.saturation, request.brightness)
    if eq:
        stages.append(eq)

    if request.scale_height is not None:
        stages.append(f"scale=-2:{request.scale_height}")

    if abs(request.speed - 1.0) > VIDEO_SPEED_TOLERANCE:
        stages.append(f"setpts=PTS/{format_factor(request.speed)}")

    return stages


def build_video_filters(request: EnhancementRequest) -> str:
    return ",".join(build_video_stages(request))


def build_audio_filters(speed: float) -> AudioPlan:
    """Build an atempo chain for ``speed``.

    A single atempo instance only accepts ratios in [0.5, 2.0], so larger
    changes are split into 2.0x or 0.5x steps plus one residual stage.
    """
    if abs(speed - 1.0) < AUDIO_SPEED_TOLERANCE:
        return AudioPlan(filters=None, codec_args=AUDIO_COPY_ARGS)

    remaining = speed
    chain: list[str] = []
    if remaining > ATEMPO_MAX:
        while remaining > ATEMPO_MAX + 1e-6:
            chain.append(f"atempo={ATEMPO_MAX}")
            remaining /= ATEMPO_MAX
    elif remaining < ATEMPO_MIN:
        while remaining < ATEMPO_MIN - 1e-6:
            chain.append(f"atempo={ATEMPO_MIN}")
            remaining /= ATEMPO_MIN

    if abs(remaining - 1.0) > 1e-3:
        chain.append(f"atempo={remaining:.6f}")

    return AudioPlan(filters=",".join(chain), codec_args=AUDIO_ENCODE_ARGS)


def build_filter_graph(request: EnhancementRequest) -> FilterGraph:
    return FilterGraph(
        video_stages=tuple(build_video_stages(request)),
        audio=build_audio_filters(request.speed),
    )


def describe_request(request: EnhancementRequest) -> list[str]:
    """Human-readable summary lines for the run header."""
    lines = []
    for name in ("denoise", "sharpen", "contrast", "saturation", "brightness"):
        value = getattr(request, name)
        if value is not None:
            lines.append(f"{name.capitalize()}: {value}")
    if request.scale_height is not None:
        lines.append(f"Scale: auto x {request.scale_height}")
    return lines
