#!/usr/bin/env python3
"""
Video enhancer: optional denoise/sharpen/eq/scale filters and speed change.

This script builds an ffmpeg filter graph from the requested knobs, runs
ffmpeg once, and renders its progress stream as a live progress bar.
"""

from __future__ import annotations

import functools
import os
import shlex
import sys
import time
from typing import Optional, Sequence

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from cli import EnhanceConfig, apply_quality_profile, build_config, parse_args, parse_cli_overrides
from filters import build_filter_graph, describe_request, format_factor
from interactive import interactive_config
from progress import ProgressInterpreter, ProgressUi, pump_progress, target_duration_ms
from toolchain import (
    build_encode_command,
    probe_duration_seconds,
    resolve_toolchain,
    spawn_encoder,
    wait_for_encoder,
)

OTLP_ENDPOINT_ENV = "ENHANCE_VIDEO_OTLP_ENDPOINT"

tracer = None


def init_tracing() -> None:
    """Configure OpenTelemetry span export when an OTLP endpoint is configured."""
    global tracer
    if tracer is not None:
        return
    endpoint = os.environ.get(OTLP_ENDPOINT_ENV)
    if not endpoint:
        return

    resource = Resource.create({"service.name": "enhance-video"})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    tracer = trace.get_tracer(__name__)


def _traced(func):
    """Decorator that wraps a function call in a tracing span if tracing is enabled."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if tracer is None:
            init_tracing()
        if tracer is not None:
            with tracer.start_as_current_span(func.__name__):
                return func(*args, **kwargs)
        return func(*args, **kwargs)

    return wrapper


def format_time(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    if hours:
        return f"{hours}h {minutes}m {secs:.1f}s"
    if minutes:
        return f"{minutes}m {secs:.1f}s"
    return f"{secs:.1f}s"


@_traced
def run_pipeline(config: EnhanceConfig) -> int:
    toolchain = resolve_toolchain(config.ffmpeg_path, config.ffprobe_path)

    request = config.request
    graph = build_filter_graph(request)
    cmd = build_encode_command(
        toolchain.ffmpeg,
        config.input_video,
        config.output_video,
        graph,
        crf=config.crf,
        preset=config.preset,
        threads=config.threads,
        verbose=config.verbose,
    )

    print("\n" + "=" * 60)
    print("Video Enhancer")
    if config.dry_run:
        print("*** DRY RUN MODE ***")
    print("=" * 60)
    print(f"Input:  {config.input_video}")
    print(f"Output: {config.output_video}")
    print(f"Speed:  {format_factor(request.speed)}x")
    for line in describe_request(request):
        print(line)
    if graph.reencodes_video:
        print(f"Video:  re-encode (libx264, crf={config.crf}, preset={config.preset})")
        print(f"Filters: {graph.video_filter}")
    else:
        print("Video:  stream copy")
    if graph.audio.touches_audio:
        print(f"Audio:  {graph.audio.filters} ({' '.join(graph.audio.codec_args[1:])})")
    else:
        print("Audio:  stream copy")
    print("=" * 60 + "\n")

    if config.dry_run:
        print(shlex.join(cmd))
        return 0

    config.output_video.parent.mkdir(parents=True, exist_ok=True)
    print("Analyzing video...")
    duration = probe_duration_seconds(toolchain.ffprobe, config.input_video)
    total_ms = target_duration_ms(duration, request.speed)
    print(f"  Duration:   {duration:.1f}s")
    print(f"  Target:     {total_ms / 1000.0:.1f}s\n")

    total_start = time.time()
    ui = ProgressUi(total_ms, audio_time_stretch=graph.audio.touches_audio)
    interpreter = ProgressInterpreter(total_ms, listener=ui)
    try:
        with spawn_encoder(cmd, verbose=config.verbose) as process:
            pump = pump_progress(process.stdout, interpreter)
            try:
                wait_for_encoder(process)
            except Exception:
                pump.join()
                raise
            pump.join_and_raise()
    finally:
        ui.close()

    total_elapsed = time.time() - total_start
    print("=" * 60)
    print("Complete!")
    print(f"Total time: {format_time(total_elapsed)}")
    print(f"Output: {config.output_video}")
    if config.output_video.exists():
        output_size_mb = config.output_video.stat().st_size / (1024 * 1024)
        print(f"Output size: {output_size_mb:.1f} MB")
    print("=" * 60 + "\n")
    return 0


@_traced
def main(argv: Optional[Sequence[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    try:
        if raw_argv:
            args = parse_args(raw_argv)
            apply_quality_profile(args, parse_cli_overrides(raw_argv))
            config = build_config(args)
        else:
            config = interactive_config()
        return run_pipeline(config)
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    init_tracing()
    raise SystemExit(main())
