"""Toolchain: binary resolution, subprocess wrappers, probing, and encoder launch."""

from __future__ import annotations

import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from filters import FilterGraph


@dataclass(frozen=True)
class Toolchain:
    ffmpeg: str
    ffprobe: str


def run_subprocess(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture_output: bool = False,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [str(part) for part in cmd],
        check=check,
        capture_output=capture_output,
        text=True,
        timeout=timeout,
    )


def get_binary_name(name: str) -> str:
    """Return the executable name for the current OS."""
    if platform.system().lower() == "windows":
        return f"{name}.exe"
    return name


def resolve_binary(custom_path: Optional[str], name: str) -> str:
    """Resolve a binary from an explicit path or PATH."""
    if custom_path:
        candidate = Path(custom_path).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(f"Provided binary not found: {candidate}")
        return str(candidate.resolve())

    system_binary = shutil.which(name)
    if system_binary is None and get_binary_name(name) != name:
        system_binary = shutil.which(get_binary_name(name))
    if system_binary is None:
        raise FileNotFoundError(
            f"`{name}` not found in PATH. Install it with Homebrew (macOS) or your "
            f"system package manager, or pass --{name} explicitly."
        )
    return system_binary


def resolve_toolchain(
    ffmpeg_path: Optional[str] = None,
    ffprobe_path: Optional[str] = None,
) -> Toolchain:
    """Resolve runtime binaries and raise clear dependency errors."""
    return Toolchain(
        ffmpeg=resolve_binary(ffmpeg_path, "ffmpeg"),
        ffprobe=resolve_binary(ffprobe_path, "ffprobe"),
    )


def probe_duration_seconds(ffprobe_bin: str, input_video: Path) -> float:
    """Read the container duration with ffprobe."""
    cmd = [
        ffprobe_bin,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(input_video),
    ]
    result = run_subprocess(cmd, check=False, capture_output=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe error (status {result.returncode})")

    raw = result.stdout.strip()
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"cannot parse duration from ffprobe output: {raw!r}") from exc


def build_encode_command(
    ffmpeg_bin: str,
    input_video: Path,
    output_video: Path,
    graph: FilterGraph,
    *,
    crf: int,
    preset: str,
    threads: int,
    verbose: bool,
) -> list[str]:
    """Build the ffmpeg invocation; machine-readable progress goes to stdout."""
    cmd = [ffmpeg_bin]
    if not verbose:
        cmd.extend(["-hide_banner", "-nostats", "-loglevel", "error"])
    cmd.extend(["-y", "-progress", "-", "-i", str(input_video)])

    if graph.reencodes_video:
        cmd.extend(["-vf", graph.video_filter])
        cmd.extend(["-c:v", "libx264", "-crf", str(crf), "-preset", preset])
        cmd.extend(["-pix_fmt", "yuv420p", "-threads", str(threads)])
    else:
        cmd.extend(["-c:v", "copy"])
        if threads > 0:
            cmd.extend(["-threads", str(threads)])

    if graph.audio.touches_audio:
        cmd.extend(["-af", graph.audio.filters])
        cmd.extend(graph.audio.codec_args)
    else:
        cmd.extend(["-c:a", "copy"])

    cmd.append(str(output_video))
    return cmd


def spawn_encoder(cmd: Sequence[str], *, verbose: bool) -> subprocess.Popen[str]:
    """Start ffmpeg with its progress stream piped to us."""
    return subprocess.Popen(
        [str(part) for part in cmd],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=None if verbose else subprocess.DEVNULL,
        text=True,
        bufsize=1,
    )


def wait_for_encoder(process: subprocess.Popen[str]) -> None:
    returncode = process.wait()
    if returncode != 0:
        raise RuntimeError(f"ffmpeg failed with status: {returncode}")
