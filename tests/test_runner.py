"""Tests for runner.py -- end-to-end stage orchestration with mocked ffmpeg."""

import json
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from m4b_merge.config import MergeConfig
from m4b_merge.errors import ExternalToolError
from m4b_merge.models import AudioCodec, Chapter, ProbeInfo
from m4b_merge.runner import EXIT_FAILURE, EXIT_OK, MergeRunner


@pytest.fixture
def work_dir(tmp_path):
    d = tmp_path / "work"
    d.mkdir()
    return d


@pytest.fixture
def inputs(tmp_path):
    def _make(*entries):
        """entries: (name, codec, bitrate[, chapters]) -- registers ffprobe results."""
        src = tmp_path / "src"
        src.mkdir(exist_ok=True)
        paths = []
        for entry in entries:
            name, codec, bitrate = entry[:3]
            chapters = entry[3] if len(entry) > 3 else ()
            p = src / name
            p.write_bytes(b"audio")
            _PROBES[p.resolve()] = ProbeInfo(
                duration=600.0, codec=codec, bitrate=bitrate, chapters=chapters
            )
            paths.append(str(p))
        return paths

    _PROBES.clear()
    return _make


_PROBES: dict[Path, ProbeInfo] = {}


def _fake_probe(path, cancel=None, ffprobe_bin="ffprobe"):
    return _PROBES[path]


def _fake_transcode(input_path, output_path, target, cancel=None, ffmpeg_bin="ffmpeg"):
    Path(output_path).write_bytes(b"encoded")


def _temp_files(work_dir: Path) -> list[Path]:
    return sorted(work_dir.glob("m4b-merge-*"))


def _runner(work_dir, **kwargs) -> MergeRunner:
    config = MergeConfig(_env_file=None, temp_dir=work_dir, **kwargs)
    return MergeRunner(config=config)


@patch("m4b_merge.stages.load.probe", side_effect=_fake_probe)
class TestMergeRunner:
    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_no_conversion_needed(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 128))
        output = tmp_path / "book.m4b"

        assert _runner(work_dir).run(paths, str(output)) == EXIT_OK

        mock_transcode.assert_not_called()
        merged_paths = mock_concat.call_args.args[0]
        assert merged_paths == [Path(p).resolve() for p in paths]
        assert _temp_files(work_dir) == []

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_outliers_converted_then_cleaned(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.mp3", "mp3", 192), ("c.m4a", "aac", 96))

        def check_concat(paths, bundle, output, **kwargs):
            # temp file exists while merging
            assert paths[1].exists()
            assert paths[1].parent == work_dir

        mock_concat.side_effect = check_concat
        assert _runner(work_dir).run(paths, str(tmp_path / "book.m4b")) == EXIT_OK

        target = mock_transcode.call_args.args[2]
        assert target.codec is AudioCodec.AAC
        assert target.bitrate == 96
        assert _temp_files(work_dir) == []

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_cleanup_runs_on_merge_failure(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.mp3", "mp3", 128), ("b.mp3", "mp3", 128))
        mock_concat.side_effect = ExternalToolError("ffmpeg", 1, "muxer failed")

        code = _runner(work_dir, codec=AudioCodec.AAC, bitrate=64).run(paths, str(tmp_path / "book.m4b"))

        assert code == EXIT_FAILURE
        assert mock_transcode.call_count == 2
        assert _temp_files(work_dir) == []

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_override_without_bitrate(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64))
        code = _runner(work_dir, codec=AudioCodec.MP3).run(paths, str(tmp_path / "book.m4b"))
        assert code == EXIT_FAILURE
        mock_transcode.assert_not_called()
        mock_concat.assert_not_called()

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_unsupported_only_batch(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.opus", "opus", 64), ("b.ogg", "vorbis", 96))
        assert _runner(work_dir).run(paths, str(tmp_path / "book.m4b")) == EXIT_FAILURE
        mock_transcode.assert_not_called()
        mock_concat.assert_not_called()

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode")
    def test_conversion_failure_skips_merge(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64), ("c.mp3", "mp3", 64), ("d.flac", "flac", 0))

        def flaky(input_path, output_path, target, cancel=None, ffmpeg_bin="ffmpeg"):
            if input_path.suffix == ".flac":
                raise ExternalToolError("ffmpeg", 1, "bad flac")
            _fake_transcode(input_path, output_path, target)

        mock_transcode.side_effect = flaky
        assert _runner(work_dir).run(paths, str(tmp_path / "book.m4b")) == EXIT_FAILURE
        mock_concat.assert_not_called()
        assert _temp_files(work_dir) == []

    @patch("m4b_merge.stages.merge.concat")
    def test_load_failure_aborts(self, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64))
        paths.append(str(tmp_path / "src" / "missing.m4a"))
        assert _runner(work_dir).run(paths, str(tmp_path / "book.m4b")) == EXIT_FAILURE
        mock_concat.assert_not_called()

    @patch("m4b_merge.stages.merge.concat")
    def test_chapter_bundle(self, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        explicit = (Chapter(0.0, 200.0, "Opening"), Chapter(200.0, 600.0, "Middle"))
        paths = inputs(
            ("a.m4a", "aac", 64),
            ("b.m4b", "aac", 64, explicit),
            ("c.m4a", "aac", 64),
        )
        runner = _runner(work_dir, metadata={"title": "Book"})
        assert runner.run(paths, str(tmp_path / "book.m4b")) == EXIT_OK

        bundle = mock_concat.call_args.args[1]
        assert [c.title for c in bundle.chapters] == ["Chapter 1", "Opening", "Middle", "Chapter 4"]
        assert bundle.chapters[-1].start == 1200.0
        assert dict(bundle.tags) == {"title": "Book"}

    @patch("m4b_merge.stages.merge.concat")
    def test_merge_progress_line_terminated(self, mock_concat, mock_probe, inputs, work_dir, tmp_path, capsys):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64))

        def fake_concat(paths, bundle, output, on_progress=None, **kwargs):
            on_progress(300.0)

        mock_concat.side_effect = fake_concat
        config = MergeConfig(_env_file=None, temp_dir=work_dir)
        runner = MergeRunner(config=config, show_progress=True)
        assert runner.run(paths, str(tmp_path / "book.m4b")) == EXIT_OK
        err = capsys.readouterr().err
        assert "\r  MERGE: 00:05:00/00:20:00\n" in err

    @patch("m4b_merge.stages.merge.concat")
    def test_progress_line_terminated_on_merge_failure(self, mock_concat, mock_probe, inputs, work_dir, tmp_path, capsys):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64))

        def failing_concat(paths, bundle, output, on_progress=None, **kwargs):
            on_progress(60.0)
            raise ExternalToolError("ffmpeg", 1, "muxer failed")

        mock_concat.side_effect = failing_concat
        config = MergeConfig(_env_file=None, temp_dir=work_dir)
        runner = MergeRunner(config=config, show_progress=True)
        assert runner.run(paths, str(tmp_path / "book.m4b")) == EXIT_FAILURE
        assert "\r  MERGE: 00:01:00/00:20:00\n" in capsys.readouterr().err

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_convert_progress_line(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path, capsys):
        paths = inputs(("a.mp3", "mp3", 128), ("b.mp3", "mp3", 128))
        config = MergeConfig(_env_file=None, temp_dir=work_dir, codec=AudioCodec.AAC, bitrate=64, max_workers=1)
        runner = MergeRunner(config=config, show_progress=True)
        assert runner.run(paths, str(tmp_path / "book.m4b")) == EXIT_OK
        captured = capsys.readouterr()
        assert "\r  CONVERT: 1/2" in captured.err
        assert "\r  CONVERT: 2/2\n" in captured.err
        assert "  CONVERT: converted 2 files" in captured.out

    @patch("m4b_merge.stages.merge.concat")
    def test_no_progress_output_by_default(self, mock_concat, mock_probe, inputs, work_dir, tmp_path, capsys):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64))
        mock_concat.side_effect = lambda paths, bundle, output, on_progress=None, **kw: on_progress(10.0)
        assert _runner(work_dir).run(paths, str(tmp_path / "book.m4b")) == EXIT_OK
        assert "\r" not in capsys.readouterr().err

    @patch("m4b_merge.stages.merge.concat")
    @patch("m4b_merge.stages.convert.transcode", side_effect=_fake_transcode)
    def test_missing_temp_dir_fails(self, mock_transcode, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.mp3", "mp3", 128))
        code = _runner(work_dir / "nope").run(paths, str(tmp_path / "book.m4b"))
        assert code == EXIT_FAILURE
        mock_transcode.assert_not_called()
        mock_concat.assert_not_called()

    @patch("m4b_merge.stages.merge.concat")
    def test_cancel_signal_threaded_through(self, mock_concat, mock_probe, inputs, work_dir, tmp_path):
        paths = inputs(("a.m4a", "aac", 64), ("b.m4a", "aac", 64))
        cancel = threading.Event()
        _runner(work_dir).run(paths, str(tmp_path / "book.m4b"), cancel=cancel)
        for call in mock_probe.call_args_list:
            assert call.kwargs["cancel"] is cancel
        assert mock_concat.call_args.kwargs["cancel"] is cancel


class TestValidationExitCodes:
    @patch("m4b_merge.stages.load.probe")
    def test_too_few_inputs(self, mock_probe, work_dir, tmp_path):
        assert _runner(work_dir).run(["a.mp3"], str(tmp_path / "o.m4b")) == EXIT_FAILURE
        mock_probe.assert_not_called()

    @patch("m4b_merge.stages.load.probe")
    def test_declined_overwrite_is_success(self, mock_probe, work_dir, tmp_path):
        output = tmp_path / "o.m4b"
        output.write_bytes(b"existing")
        config = MergeConfig(_env_file=None, temp_dir=work_dir)
        runner = MergeRunner(config=config, confirm_overwrite=lambda p: False)
        assert runner.run(["a.mp3", "b.mp3"], str(output)) == EXIT_OK
        mock_probe.assert_not_called()
        assert output.read_bytes() == b"existing"
