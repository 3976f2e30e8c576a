import io
import unittest
from unittest import mock

import progress
from progress import ProgressInterpreter, Stage


class RecordingListener:
    def __init__(self):
        self.updates = []
        self.finished = []

    def update(self, state):
        self.updates.append((state.position_ms, state.stage))

    def finish(self, state):
        self.finished.append(state.position_ms)


class FailingStream:
    def __iter__(self):
        yield "out_time_ms=1000000\n"
        raise OSError("pipe closed")


class TestTargetDuration(unittest.TestCase):
    def test_unity_speed_uses_raw_duration(self):
        self.assertEqual(progress.target_duration_ms(12.3456, 1.0), 12345)
        self.assertEqual(progress.target_duration_ms(10.0, 1.0004), 10000)

    def test_speed_divides_duration(self):
        self.assertEqual(progress.target_duration_ms(10.0, 2.0), 5000)
        self.assertEqual(progress.target_duration_ms(10.0, 0.5), 20000)

    def test_floor_of_one_millisecond(self):
        self.assertEqual(progress.target_duration_ms(0.0, 1.0), 1)
        self.assertEqual(progress.target_duration_ms(0.0001, 4.0), 1)


class TestStageBrackets(unittest.TestCase):
    def test_stage_for_fraction_boundaries(self):
        self.assertIs(progress.stage_for_fraction(0.0), Stage.PREPARING)
        self.assertIs(progress.stage_for_fraction(0.0999), Stage.PREPARING)
        self.assertIs(progress.stage_for_fraction(0.10), Stage.ENCODING_VIDEO)
        self.assertIs(progress.stage_for_fraction(0.6499), Stage.ENCODING_VIDEO)
        self.assertIs(progress.stage_for_fraction(0.65), Stage.ENCODING_AUDIO)
        self.assertIs(progress.stage_for_fraction(0.9499), Stage.ENCODING_AUDIO)
        self.assertIs(progress.stage_for_fraction(0.95), Stage.FINALIZING)
        self.assertIs(progress.stage_for_fraction(1.0), Stage.FINALIZING)

    def test_stage_carries_label_and_detail(self):
        self.assertEqual(Stage.ENCODING_VIDEO.label, "Encoding video.")
        self.assertEqual(Stage.FINALIZING.detail, "Muxing, writing headers, closing output...")


class TestLineParsing(unittest.TestCase):
    def test_parse_progress_line_accepts_key_value(self):
        self.assertEqual(
            progress.parse_progress_line("out_time_ms=5000000\n"),
            ("out_time_ms", "5000000"),
        )
        self.assertEqual(
            progress.parse_progress_line("out_time=00:00:05.000000"),
            ("out_time", "00:00:05.000000"),
        )

    def test_parse_progress_line_rejects_other_text(self):
        self.assertIsNone(progress.parse_progress_line("bitrate=N/A"))
        self.assertIsNone(progress.parse_progress_line("frame= 10 fps=0.0"))
        self.assertIsNone(progress.parse_progress_line(""))

    def test_parse_out_time_ms_defaults_to_zero(self):
        self.assertEqual(progress.parse_out_time_ms("1234"), 1234)
        self.assertEqual(progress.parse_out_time_ms("-9223372036854775807"), 0)
        self.assertEqual(progress.parse_out_time_ms("1.5"), 0)


class TestProgressInterpreter(unittest.TestCase):
    def test_out_time_updates_position_and_stage(self):
        listener = RecordingListener()
        interpreter = ProgressInterpreter(10_000, listener=listener)
        interpreter.feed("out_time_ms=5000000\n")

        self.assertEqual(interpreter.state.position_ms, 5000)
        self.assertIs(interpreter.state.stage, Stage.ENCODING_VIDEO)
        self.assertEqual(listener.updates, [(5000, Stage.ENCODING_VIDEO)])

    def test_position_clamped_to_total(self):
        interpreter = ProgressInterpreter(10_000)
        interpreter.feed("out_time_ms=99000000")
        self.assertEqual(interpreter.state.position_ms, 10_000)
        self.assertIs(interpreter.state.stage, Stage.FINALIZING)

    def test_malformed_value_counts_as_zero(self):
        interpreter = ProgressInterpreter(10_000)
        interpreter.feed("out_time_ms=5000000")
        interpreter.feed("out_time_ms=-1")
        self.assertEqual(interpreter.state.position_ms, 0)
        self.assertIs(interpreter.state.stage, Stage.PREPARING)

    def test_unmatched_lines_are_ignored(self):
        listener = RecordingListener()
        interpreter = ProgressInterpreter(10_000, listener=listener)
        interpreter.consume(["garbage line", "bitrate=N/A", "speed=1.2x"])
        self.assertEqual(interpreter.state.position_ms, 0)
        self.assertEqual(listener.updates, [])

    def test_progress_end_marks_completion(self):
        listener = RecordingListener()
        interpreter = ProgressInterpreter(10_000, listener=listener)
        interpreter.feed("out_time_ms=1000000")
        interpreter.feed("progress=continue")
        self.assertFalse(interpreter.state.finished)

        interpreter.feed("progress=end")
        self.assertTrue(interpreter.state.finished)
        self.assertEqual(listener.finished, [1000])

    def test_no_stage_inference_after_end(self):
        interpreter = ProgressInterpreter(10_000)
        interpreter.consume(["progress=end", "out_time_ms=9000000"])
        self.assertEqual(interpreter.state.position_ms, 0)
        self.assertIs(interpreter.state.stage, Stage.PREPARING)

    def test_consume_full_ffmpeg_block(self):
        block = io.StringIO(
            "frame=120\n"
            "fps=30.00\n"
            "bitrate=N/A\n"
            "out_time_us=8000000\n"
            "out_time_ms=8000000\n"
            "out_time=00:00:08.000000\n"
            "speed=2.01x\n"
            "progress=end\n"
        )
        state = ProgressInterpreter(10_000).consume(block)
        self.assertEqual(state.position_ms, 8000)
        self.assertIs(state.stage, Stage.ENCODING_AUDIO)
        self.assertTrue(state.finished)


class TestProgressPump(unittest.TestCase):
    def test_pump_consumes_stream_on_worker_thread(self):
        interpreter = ProgressInterpreter(10_000)
        pump = progress.pump_progress(
            io.StringIO("out_time_ms=9600000\nprogress=end\n"),
            interpreter,
        )
        state = pump.join_and_raise()
        self.assertEqual(state.position_ms, 9600)
        self.assertTrue(state.finished)

    def test_pump_reraises_stream_error_after_join(self):
        interpreter = ProgressInterpreter(10_000)
        pump = progress.pump_progress(FailingStream(), interpreter)
        with self.assertRaises(OSError):
            pump.join_and_raise()
        self.assertEqual(interpreter.state.position_ms, 1000)


class TestProgressUi(unittest.TestCase):
    def test_ui_tracks_state(self):
        ui = progress.ProgressUi(10_000, audio_time_stretch=True, disable=True)
        try:
            state = progress.ProgressState(
                total_ms=10_000,
                position_ms=7000,
                stage=Stage.ENCODING_AUDIO,
            )
            with mock.patch.object(ui.bar, "refresh") as refresh_mock:
                ui.update(state)
                self.assertEqual(ui.bar.n, 7000)
                ui.finish(state)
                self.assertEqual(ui.bar.n, 10_000)
            self.assertEqual(refresh_mock.call_count, 2)
        finally:
            ui.close()


if __name__ == "__main__":
    unittest.main()
