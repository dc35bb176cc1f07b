"""Tests for media_parser.py: the discover / process / finalize pipeline."""
import queue
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from errors import ProcessingError, RenameConflictError
from media_parser import MediaParser
from models import ParseOptions, Stage
from organiser import FileOrganiser
from tests.conftest import RecordingCompressor, make_file, make_media, mtime_extractor


DAY = "2023 06 June 15"
BASE = "2023_06_June_15"


@pytest.fixture
def staging(tmp_path, monkeypatch):
    """Pin the staging directory so tests can check it is cleaned up."""
    d = tmp_path / "staging"

    def fake_mkdtemp(prefix=""):
        d.mkdir()
        return str(d)

    monkeypatch.setattr("media_parser.tempfile.mkdtemp", fake_mkdtemp)
    return d


@pytest.fixture
def library(src):
    make_media(src / "a.jpg", datetime(2023, 6, 15, 10, 0), b"a-bytes")
    make_media(src / "trip" / "b.JPG", datetime(2023, 6, 15, 11, 0), b"b-bytes")
    make_media(src / "trip" / "clip.mov", datetime(2023, 6, 15, 9, 0), b"clip-bytes")
    make_media(src / "sub" / "c.png", datetime(2024, 1, 5, 8, 0), b"c-bytes")
    make_file(src / "notes.txt")
    make_file(src / ".hidden" / "x.jpg")
    return src


def _parser(compressor=None, name_writer=None):
    return MediaParser(
        FileOrganiser(mtime_extractor()),
        compressor=compressor or RecordingCompressor(),
        name_writer=name_writer,
    )


class TestParse:
    def test_end_to_end_layout(self, library, tgt, staging):
        _parser().parse(library, tgt, ParseOptions(max_concurrency=2))

        day = tgt / DAY
        assert sorted(p.name for p in day.iterdir()) == [f"{BASE}_00001.jpg", f"{BASE}_00002.jpg", "videos"]
        assert (day / f"{BASE}_00001.jpg").read_bytes() == b"a-bytes"
        assert (day / f"{BASE}_00002.jpg").read_bytes() == b"b-bytes"
        assert (day / "videos" / f"{BASE}_00001.mov").read_bytes() == b"clip-bytes"
        assert [p.name for p in (tgt / "2024 01 January 05").iterdir()] == ["2024_01_January_05_00001.png"]

    def test_hidden_and_unsupported_files_ignored(self, library, tgt, staging):
        _parser().parse(library, tgt, ParseOptions())
        all_files = [p.name for p in tgt.rglob("*") if p.is_file()]
        assert len(all_files) == 4
        assert "notes.txt" not in all_files

    def test_source_left_untouched(self, library, tgt, staging):
        _parser().parse(library, tgt, ParseOptions())
        assert (library / "a.jpg").read_bytes() == b"a-bytes"
        assert (library / "trip" / "clip.mov").exists()

    def test_staging_removed(self, library, tgt, staging):
        _parser().parse(library, tgt, ParseOptions())
        assert not staging.exists()

    def test_only_jpegs_compressed(self, library, tgt, staging):
        compressor = RecordingCompressor()
        _parser(compressor).parse(library, tgt, ParseOptions(jpeg_quality=70))

        assert sorted((p.name, q) for p, q in compressor.calls) == [
            ("root-a.jpg", 70), ("trip-b.JPG", 70),
        ]

    def test_compression_disabled(self, library, tgt, staging):
        compressor = RecordingCompressor()
        _parser(compressor).parse(library, tgt, ParseOptions(compress_jpegs=False))
        assert compressor.calls == []

    def test_original_names_recorded(self, library, tgt, staging):
        writer = MagicMock()
        _parser(name_writer=writer).parse(library, tgt, ParseOptions())

        recorded = sorted((c.args[0].name, c.args[1]) for c in writer.write_if_missing.call_args_list)
        assert recorded == [
            ("root-a.jpg", "a.jpg"),
            ("sub-c.png", "c.png"),
            ("trip-b.JPG", "b.JPG"),
            ("trip-clip.mov", "clip.mov"),
        ]

    def test_progress_events(self, library, tgt, staging):
        sink = queue.Queue()
        _parser().parse(library, tgt, ParseOptions(progress=sink))
        events = [sink.get_nowait() for _ in range(sink.qsize())]

        copying = [e for e in events if e.stage is Stage.COPYING]
        compressing = [e for e in events if e.stage is Stage.COMPRESSING]
        assert len(copying) == 4
        assert all(e.total == 4 for e in copying)
        assert sorted(e.current for e in copying) == [1, 2, 3, 4]
        assert len(compressing) == 2
        assert any(e.stage is Stage.ORGANISING for e in events)
        assert any(e.stage is Stage.RENAMING for e in events)

    def test_empty_source(self, src, tgt, staging):
        _parser().parse(src, tgt, ParseOptions())
        assert list(tgt.iterdir()) == []


class TestParseFailures:
    def test_worker_failure_aborts_before_organising(self, library, tgt, staging):
        compressor = RecordingCompressor(fail_on=("b.JPG",))
        with pytest.raises(ProcessingError, match="simulated failure"):
            _parser(compressor).parse(library, tgt, ParseOptions())

        assert list(tgt.iterdir()) == []
        assert not staging.exists()

    def test_other_workers_still_run(self, library, tgt, staging):
        compressor = RecordingCompressor(fail_on=("b.JPG",))
        with pytest.raises(ProcessingError):
            _parser(compressor).parse(library, tgt, ParseOptions(max_concurrency=1))
        assert len(compressor.calls) == 2

    @pytest.mark.parametrize("first, second", [
        ("a-b/x.jpg", "a/b/x.jpg"),
        ("x.jpg", "root/x.jpg"),
    ])
    def test_colliding_staging_names_abort_before_organising(self, src, tgt, staging, first, second):
        make_media(src / first, datetime(2023, 6, 15, 10, 0), b"one")
        make_media(src / second, datetime(2023, 6, 15, 11, 0), b"two")

        with pytest.raises(ProcessingError, match="already exists"):
            _parser().parse(src, tgt, ParseOptions(compress_jpegs=False))

        assert list(tgt.iterdir()) == []
        assert not staging.exists()

    def test_taken_video_name_leaves_target_untouched(self, tmp_path, tgt, staging):
        first = tmp_path / "first"
        make_media(first / "clip.mov", datetime(2023, 6, 15, 9, 0), b"clip")
        _parser().parse(first, tgt, ParseOptions())

        second = tmp_path / "second"
        make_media(second / "clip2.mov", datetime(2023, 6, 15, 10, 0), b"clip2")
        make_media(second / "d.jpg", datetime(2023, 6, 15, 11, 0), b"d")
        with pytest.raises(RenameConflictError):
            _parser().parse(second, tgt, ParseOptions())

        day = tgt / DAY
        assert sorted(p.name for p in day.iterdir()) == ["videos"]
        assert [p.name for p in (day / "videos").iterdir()] == [f"{BASE}_00001.mov"]
        assert (day / "videos" / f"{BASE}_00001.mov").read_bytes() == b"clip"

    def test_missing_source(self, tmp_path, tgt, staging):
        with pytest.raises(ProcessingError):
            _parser().parse(tmp_path / "missing", tgt, ParseOptions())
        assert not staging.exists()
