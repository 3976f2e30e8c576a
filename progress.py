"""Progress: interpret ffmpeg ``-progress`` output and drive the tqdm display."""

from __future__ import annotations

import enum
import re
import threading
from dataclasses import dataclass
from typing import IO, Iterable, Optional, Protocol

from tqdm import tqdm

PROGRESS_LINE_RE = re.compile(r"^(\w+)=([\w\-.:]+)$", re.ASCII)

SPEED_TOLERANCE = 0.0005


class Stage(enum.Enum):
    PREPARING = ("Preparing filters.", "Applying selected filters (if any)...")
    ENCODING_VIDEO = ("Encoding video.", "Processing frames...")
    ENCODING_AUDIO = ("Adjusting/encoding audio.", "Applying atempo (if speed != 1.0)...")
    FINALIZING = ("Finalizing and muxing.", "Muxing, writing headers, closing output...")

    def __init__(self, label: str, detail: str) -> None:
        self.label = label
        self.detail = detail


def stage_for_fraction(fraction: float) -> Stage:
    if fraction < 0.10:
        return Stage.PREPARING
    if fraction < 0.65:
        return Stage.ENCODING_VIDEO
    if fraction < 0.95:
        return Stage.ENCODING_AUDIO
    return Stage.FINALIZING


def target_duration_ms(duration_seconds: float, speed: float) -> int:
    """Expected output duration in whole milliseconds (never below 1)."""
    if abs(speed - 1.0) < SPEED_TOLERANCE:
        target_seconds = duration_seconds
    else:
        target_seconds = duration_seconds / speed
    return int(max(target_seconds * 1000.0, 1.0))


def parse_progress_line(line: str) -> Optional[tuple[str, str]]:
    """Split a ``key=value`` progress line; anything else yields None."""
    match = PROGRESS_LINE_RE.match(line.rstrip("\r\n"))
    if match is None:
        return None
    return match.group(1), match.group(2)


def parse_out_time_ms(value: str) -> int:
    # ffmpeg reports microseconds under this key; N/A and negatives become 0.
    if not value.isdigit():
        return 0
    return int(value)


@dataclass
class ProgressState:
    total_ms: int
    position_ms: int = 0
    stage: Stage = Stage.PREPARING
    finished: bool = False

    @property
    def fraction(self) -> float:
        return self.position_ms / self.total_ms if self.total_ms > 0 else 0.0


class ProgressListener(Protocol):
    def update(self, state: ProgressState) -> None: ...

    def finish(self, state: ProgressState) -> None: ...


class ProgressInterpreter:
    """Single owner of a ProgressState fed from ffmpeg progress lines."""

    def __init__(self, total_ms: int, listener: Optional[ProgressListener] = None) -> None:
        self.state = ProgressState(total_ms=max(int(total_ms), 1))
        self.listener = listener

    def feed(self, line: str) -> None:
        parsed = parse_progress_line(line)
        if parsed is None:
            return
        key, value = parsed

        if key == "out_time_ms":
            if self.state.finished:
                return
            position = min(parse_out_time_ms(value) // 1000, self.state.total_ms)
            self.state.position_ms = position
            self.state.stage = stage_for_fraction(self.state.fraction)
            if self.listener is not None:
                self.listener.update(self.state)
        elif key == "progress" and value == "end":
            self.state.finished = True
            if self.listener is not None:
                self.listener.finish(self.state)

    def consume(self, lines: Iterable[str]) -> ProgressState:
        for line in lines:
            self.feed(line)
        return self.state


class ProgressUi:
    """tqdm bar tracking output milliseconds, with the stage as its caption."""

    def __init__(self, total_ms: int, audio_time_stretch: bool, disable: bool = False) -> None:
        self.bar = tqdm(
            total=total_ms,
            unit="ms",
            desc=Stage.PREPARING.label,
            dynamic_ncols=True,
            disable=disable,
        )
        if audio_time_stretch:
            self.bar.set_postfix_str("Audio will be time-stretched (atempo)...")
        else:
            self.bar.set_postfix_str("Building filter graph.")

    def update(self, state: ProgressState) -> None:
        self.bar.n = state.position_ms
        self.bar.set_description_str(state.stage.label, refresh=False)
        self.bar.set_postfix_str(state.stage.detail, refresh=False)
        self.bar.refresh()

    def finish(self, state: ProgressState) -> None:
        self.bar.n = state.total_ms
        self.bar.set_description_str("Completed", refresh=False)
        self.bar.set_postfix_str("Done", refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


class ProgressPump(threading.Thread):
    """Consume an encoder's progress stream on a dedicated thread.

    Errors raised while reading are kept until :meth:`join_and_raise` so the
    caller can first wait on the child process.
    """

    def __init__(self, stream: IO[str], interpreter: ProgressInterpreter) -> None:
        super().__init__(name="ffmpeg-progress", daemon=True)
        self.stream = stream
        self.interpreter = interpreter
        self.error: Optional[Exception] = None

    def run(self) -> None:
        try:
            self.interpreter.consume(self.stream)
        except Exception as exc:  # re-raised on the supervising thread
            self.error = exc

    def join_and_raise(self) -> ProgressState:
        self.join()
        if self.error is not None:
            raise self.error
        return self.interpreter.state


def pump_progress(stream: IO[str], interpreter: ProgressInterpreter) -> ProgressPump:
    pump = ProgressPump(stream, interpreter)
    pump.start()
    return pump
