"""Tests for organiser.py: date bucketing and per-directory renaming."""
import queue
from datetime import datetime

import pytest

from date_extractor import DateExtractor
from errors import ConflictError, DateExtractionError, RenameConflictError, ValidationError
from models import Stage
from organiser import FileOrganiser
from tests.conftest import StaticMetadataReader, make_file, make_media, mtime_extractor


class TestOrganiseByDate:
    def test_files_bucketed_by_date(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15, 10, 0))
        make_media(src / "root-b.mov", datetime(2023, 6, 15, 22, 0))
        make_media(src / "trip-c.jpg", datetime(2024, 1, 5, 8, 0))

        moved = FileOrganiser(mtime_extractor()).organise_by_date(src, tgt)

        assert moved == 3
        assert sorted(p.name for p in (tgt / "2023 06 June 15").iterdir()) == ["root-a.jpg", "root-b.mov"]
        assert [p.name for p in (tgt / "2024 01 January 05").iterdir()] == ["trip-c.jpg"]
        assert list(src.iterdir()) == []

    def test_metadata_date_preferred(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15))
        reader = StaticMetadataReader({("root-a.jpg", "CreationDate"): "2020:02:29 12:00:00"})
        FileOrganiser(DateExtractor.with_metadata(reader)).organise_by_date(src, tgt)
        assert (tgt / "2020 02 February 29" / "root-a.jpg").exists()

    def test_subdirectories_left_alone(self, src, tgt):
        make_file(src / "nested" / "x.jpg")
        assert FileOrganiser(mtime_extractor()).organise_by_date(src, tgt) == 0
        assert (src / "nested" / "x.jpg").exists()

    def test_unresolvable_date_is_fatal(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15))
        organiser = FileOrganiser(DateExtractor([]))
        with pytest.raises(DateExtractionError):
            organiser.organise_by_date(src, tgt)

    def test_existing_destination_is_a_conflict(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15), b"new")
        make_file(tgt / "2023 06 June 15" / "root-a.jpg", b"old")
        with pytest.raises(ConflictError):
            FileOrganiser(mtime_extractor()).organise_by_date(src, tgt)
        assert (tgt / "2023 06 June 15" / "root-a.jpg").read_bytes() == b"old"

    def test_emits_organising_progress(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15))
        sink = queue.Queue()
        FileOrganiser(mtime_extractor()).organise_by_date(src, tgt, sink)
        event = sink.get_nowait()
        assert (event.stage, event.current, event.total) == (Stage.ORGANISING, 1, 1)


class TestOrganiseVideosAndRenameImages:
    def test_videos_moved_and_images_renamed(self, tgt):
        day = tgt / "2023 06 June 15"
        make_media(day / "root-b.jpg", datetime(2023, 6, 15, 12, 0), b"second")
        make_media(day / "root-a.heic", datetime(2023, 6, 15, 9, 0), b"first")
        make_media(day / "root-clip.MOV", datetime(2023, 6, 15, 10, 0), b"video")

        FileOrganiser(mtime_extractor()).organise_videos_and_rename_images(tgt)

        assert sorted(p.name for p in day.iterdir()) == [
            "2023_06_June_15_00001.heic", "2023_06_June_15_00002.jpg", "videos",
        ]
        assert (day / "2023_06_June_15_00001.heic").read_bytes() == b"first"
        assert (day / "videos" / "2023_06_June_15_00001.mov").read_bytes() == b"video"

    def test_no_videos_directory_without_videos(self, tgt):
        day = tgt / "2023 06 June 15"
        make_media(day / "root-a.jpg", datetime(2023, 6, 15))
        FileOrganiser(mtime_extractor()).organise_videos_and_rename_images(tgt)
        assert not (day / "videos").exists()

    def test_malformed_directory_name_aborts(self, tgt):
        (tgt / "holiday").mkdir()
        with pytest.raises(ValidationError):
            FileOrganiser(mtime_extractor()).organise_videos_and_rename_images(tgt)

    def test_suffixed_directory_name_aborts(self, tgt):
        (tgt / "2023 06 June 15 Rome").mkdir()
        with pytest.raises(ValidationError):
            FileOrganiser(mtime_extractor()).organise_videos_and_rename_images(tgt)

    def test_dot_directories_ignored(self, tgt):
        make_file(tgt / ".cache" / "a.jpg")
        FileOrganiser(mtime_extractor()).organise_videos_and_rename_images(tgt)
        assert (tgt / ".cache" / "a.jpg").exists()


class TestCheckConflicts:
    def test_clean_target_passes(self, src, tgt):
        make_media(src / "root-a.jpg", datetime(2023, 6, 15))
        make_media(src / "root-clip.mov", datetime(2023, 6, 15))
        FileOrganiser(mtime_extractor()).check_conflicts(src, tgt)

    def test_taken_video_sequence_name(self, src, tgt):
        make_file(tgt / "2023 06 June 15" / "videos" / "2023_06_June_15_00001.mov", b"old")
        make_media(src / "root-clip2.mov", datetime(2023, 6, 15, 10, 0))

        with pytest.raises(RenameConflictError):
            FileOrganiser(mtime_extractor()).check_conflicts(src, tgt)
        assert (src / "root-clip2.mov").exists()

    def test_video_extension_change_does_not_collide(self, src, tgt):
        make_file(tgt / "2023 06 June 15" / "videos" / "2023_06_June_15_00001.mov")
        make_media(src / "root-clip.mp4", datetime(2023, 6, 15))
        FileOrganiser(mtime_extractor()).check_conflicts(src, tgt)

    def test_same_file_name_in_date_directory(self, src, tgt):
        make_file(tgt / "2023 06 June 15" / "root-a.jpg", b"old")
        make_media(src / "root-a.jpg", datetime(2023, 6, 15))
        with pytest.raises(ConflictError):
            FileOrganiser(mtime_extractor()).check_conflicts(src, tgt)

    def test_images_renumber_alongside_existing(self, src, tgt):
        make_file(tgt / "2023 06 June 15" / "2023_06_June_15_00001.jpg")
        make_media(src / "root-b.jpg", datetime(2023, 6, 15))
        FileOrganiser(mtime_extractor()).check_conflicts(src, tgt)
