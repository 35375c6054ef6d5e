# tests/test_batch_coordinator.py
import logging

import pytest

import config
from core.settings import ExtractionSettings
from extractors.image import ImageSubtitleExtractor
from extractors.ocr import OcrAdapter
from extractors.text import TextSubtitleExtractor
from services.batch_coordinator import BatchCoordinator, BatchSummary, RunState
from services.batch_queue import BatchQueue, QueueItemStatus
from services.cleanup import delete_with_retry
from services.dispatcher import (
    DispatchOutcome,
    DispatchResult,
    ExtractionDispatcher,
    ExtractionStrategy,
    VOBSUB_GUIDANCE,
)
from utils.error_handler import (
    ExtractionError,
    FileHandlingError,
    NoSuitableTrackError,
    OperationCancelledError,
    ProbeError,
    SubForgeError,
)


class FakeProber:
    """Returns canned tracks per file name; an exception value is raised."""

    def __init__(self, tracks_by_name, default=None):
        self.tracks_by_name = tracks_by_name
        self.default = default if default is not None else []
        self.probed = []

    def probe(self, file_path, cancel_event=None):
        self.probed.append(file_path.name)
        tracks = self.tracks_by_name.get(file_path.name, self.default)
        if isinstance(tracks, Exception):
            raise tracks
        return tracks


class FakeDispatcher:
    """Records dispatches; ``hooks`` maps a file name to a callable run first."""

    def __init__(self, hooks=None):
        self.hooks = hooks or {}
        self.dispatched = []

    def dispatch(self, input_file, track, output_path, settings=None, cancel_event=None, progress_reporter=None):
        self.dispatched.append((input_file.name, output_path))
        hook = self.hooks.get(input_file.name)
        if hook is not None:
            result = hook(track, output_path)
            if result is not None:
                return result
        return DispatchResult(DispatchOutcome.EXTRACTED, track, ExtractionStrategy.TEXT_COPY, output_path=output_path)


@pytest.fixture
def subrip(make_track):
    return [make_track(2, "S_TEXT/UTF8", "eng")]


@pytest.fixture
def files(container):
    return [container(name, size=1000 * (i + 1)) for i, name in enumerate(("a.mkv", "b.mkv", "c.mkv"))]


@pytest.fixture
def build(files, subrip):
    def _build(tracks_by_name=None, hooks=None, **kwargs):
        queue = BatchQueue()
        queue.add_files(files)
        prober = FakeProber(tracks_by_name or {}, default=subrip)
        dispatcher = kwargs.pop("dispatcher", None) or FakeDispatcher(hooks)
        return BatchCoordinator(queue=queue, prober=prober, dispatcher=dispatcher, **kwargs)
    return _build


def statuses(coordinator):
    return [item.status for item in coordinator.queue]


def test_all_files_processed_in_order(build):
    coordinator = build()

    summary = coordinator.process_batch()

    assert summary.state is RunState.COMPLETED
    assert [name for name, _ in coordinator.dispatcher.dispatched] == ["a.mkv", "b.mkv", "c.mkv"]
    assert statuses(coordinator) == [QueueItemStatus.COMPLETED] * 3
    assert summary.statistics.bytes_processed == 6000
    assert coordinator.queue[0].output_path.name == "a.eng.srt"
    assert not coordinator.is_busy


def test_file_without_tracks_does_not_stop_the_batch(build):
    coordinator = build({"b.mkv": []})

    summary = coordinator.process_batch()

    assert statuses(coordinator) == [
        QueueItemStatus.COMPLETED,
        QueueItemStatus.ERROR,
        QueueItemStatus.COMPLETED,
    ]
    assert coordinator.queue[1].status_message == "Error: No suitable track found for extraction"
    assert len(summary.successful) == 2
    assert [outcome.name for outcome in summary.failed] == ["b.mkv"]
    assert summary.statistics.errors == 1


def test_probe_failure_is_isolated(build):
    coordinator = build({"a.mkv": ProbeError("mkvmerge crashed", "a.mkv")})

    summary = coordinator.process_batch()

    assert coordinator.queue[0].status is QueueItemStatus.ERROR
    assert "Probe failed" in coordinator.queue[0].status_message
    assert len(summary.successful) == 2


def test_failed_and_manual_results_are_errors(build, subrip):
    failure = DispatchResult(
        DispatchOutcome.FAILED, subrip[0], ExtractionStrategy.TEXT_COPY, error=ExtractionError("broken", 2)
    )
    manual = DispatchResult(
        DispatchOutcome.MANUAL_TOOL_REQUIRED, subrip[0], ExtractionStrategy.MANUAL_TOOL, guidance=VOBSUB_GUIDANCE
    )
    coordinator = build(hooks={"a.mkv": lambda t, o: failure, "b.mkv": lambda t, o: manual})

    coordinator.process_batch()

    assert coordinator.queue[0].status_message.startswith("Error: Track extraction failed")
    assert coordinator.queue[1].status_message == (
        "Error: VobSub subtitles require manual conversion with Subtitle Edit"
    )
    assert coordinator.queue[2].status is QueueItemStatus.COMPLETED


def test_cancel_between_files_then_resume(build):
    coordinator = None

    def cancel_after_a(track, output_path):
        coordinator.cancel()

    coordinator = build(hooks={"a.mkv": cancel_after_a})

    summary = coordinator.process_batch()

    assert summary.state is RunState.CANCELLED
    assert statuses(coordinator) == [
        QueueItemStatus.COMPLETED,
        QueueItemStatus.PENDING,
        QueueItemStatus.PENDING,
    ]
    assert coordinator.run.last_processed_index == 0
    assert "Batch processing cancelled" in summary.render_report()

    coordinator.dispatcher.dispatched.clear()
    resumed = coordinator.resume_batch()

    assert [name for name, _ in coordinator.dispatcher.dispatched] == ["b.mkv", "c.mkv"]
    assert resumed.state is RunState.COMPLETED
    assert len(resumed.successful) == 3


def test_cancel_during_a_file(build):
    coordinator = None

    def cancelled_mid_extraction(track, output_path):
        coordinator.cancel()
        raise OperationCancelledError("ffmpeg cancelled")

    coordinator = build(hooks={"b.mkv": cancelled_mid_extraction})

    summary = coordinator.process_batch()

    assert statuses(coordinator) == [
        QueueItemStatus.COMPLETED,
        QueueItemStatus.CANCELLED,
        QueueItemStatus.PENDING,
    ]
    assert summary.state is RunState.CANCELLED
    assert [outcome.name for outcome in summary.cancelled] == ["b.mkv"]
    assert coordinator.run.last_processed_index == 0


def test_resume_retries_the_cancelled_file(build):
    coordinator = None

    def cancelled_mid_extraction(track, output_path):
        coordinator.cancel()
        raise OperationCancelledError("ffmpeg cancelled")

    coordinator = build(hooks={"b.mkv": cancelled_mid_extraction})
    coordinator.process_batch()

    coordinator.dispatcher.hooks.clear()
    coordinator.dispatcher.dispatched.clear()
    resumed = coordinator.resume_batch()

    assert [name for name, _ in coordinator.dispatcher.dispatched] == ["b.mkv", "c.mkv"]
    assert statuses(coordinator) == [QueueItemStatus.COMPLETED] * 3
    assert resumed.state is RunState.COMPLETED
    assert resumed.statistics.cancelled == 0


def test_resume_with_nothing_left(build, caplog):
    coordinator = build()
    coordinator.process_batch()

    with caplog.at_level(logging.INFO):
        summary = coordinator.resume_batch()

    assert isinstance(summary, BatchSummary)
    assert summary.is_empty
    assert "No remaining files to process in batch queue" in caplog.text


def test_new_run_resets_finished_items(build):
    coordinator = build({"b.mkv": []})
    coordinator.process_batch()

    coordinator.prober.tracks_by_name.clear()
    summary = coordinator.process_batch()

    assert statuses(coordinator) == [QueueItemStatus.COMPLETED] * 3
    assert summary.failed == []


def test_negative_start_index(build):
    with pytest.raises(ValueError):
        build().process_batch(-1)


def test_only_one_run_at_a_time(build):
    coordinator = None

    def nested_run(track, output_path):
        coordinator.process_batch()

    coordinator = build(hooks={"a.mkv": nested_run})

    coordinator.process_batch()

    assert coordinator.queue[0].status_message == "Error: A batch run is already in progress"


def test_outputs_are_unique_within_a_run(container, tmp_path, subrip):
    first = container("movie.mkv", directory=tmp_path / "disc1")
    second = container("movie.mkv", directory=tmp_path / "disc2")
    queue = BatchQueue()
    queue.add_files([first, second])
    settings = ExtractionSettings(output_dir=tmp_path / "subs")
    coordinator = BatchCoordinator(queue, FakeProber({}, subrip), FakeDispatcher(), settings)

    coordinator.process_batch()

    assert [item.output_path.name for item in queue] == ["movie.eng.srt", "movie.eng_1.srt"]


def test_cleanup_failure_keeps_item_completed(container, make_track, fake_runner, caplog, tmp_path):
    def locked(path):
        raise FileHandlingError("file in use", str(path))

    dispatcher = ExtractionDispatcher(
        text_extractor=TextSubtitleExtractor(fake_runner),
        image_extractor=ImageSubtitleExtractor(fake_runner),
        ocr_adapter=OcrAdapter(fake_runner),
        cleanup=lambda path: delete_with_retry(path, sleep=lambda s: None, delete=locked),
        temp_root=tmp_path,
    )
    queue = BatchQueue()
    queue.add_files([container("bluray.mkv")])
    coordinator = BatchCoordinator(queue, FakeProber({}, [make_track(3, "S_HDMV/PGS")]), dispatcher)

    with caplog.at_level(logging.WARNING):
        summary = coordinator.process_batch()

    assert queue[0].status is QueueItemStatus.COMPLETED
    assert "Cleanup failed" in caplog.text
    assert len(summary.successful) == 1


def test_inter_item_delay(build, monkeypatch):
    sleeps = []
    monkeypatch.setitem(config.EXTRACTION_CONFIG, "inter_item_delay", 0.5)

    build(sleep=sleeps.append).process_batch()

    assert sleeps == [0.5, 0.5]


def test_progress_is_reported(build, progress_events):
    events, callback = progress_events

    build(progress_callback=callback).process_batch()

    assert events[-1][0] == "complete"
    assert events[-1][3]["success"] is True
    file_updates = [event for event in events if event[0] == "file"]
    assert [event[1] for event in file_updates] == [0, 0, 1, 1, 2, 2]
    assert all(event[3]["operation_id"] == "batch" for event in events)


def test_coordinator_failure_ends_the_run(build, monkeypatch):
    coordinator = build()

    def explode(*args, **kwargs):
        raise RuntimeError("queue corrupted")

    monkeypatch.setattr(coordinator, "_process_item", explode)

    summary = coordinator.process_batch()

    assert summary.state is RunState.FAILED
    assert "queue corrupted" in summary.fatal_error
    assert "Fatal error: queue corrupted" in summary.render_report()
    assert not coordinator.is_busy


def test_report_lists_each_file(build):
    summary = build({"c.mkv": []}).process_batch()

    report = summary.render_report()

    assert report.startswith("Batch processing completed!")
    assert "Total files: 3" in report
    assert "Successful: 2" in report
    assert "Errors: 1" in report
    assert "   • c.mkv - Error: No suitable track found for extraction" in report
    assert summary.to_dict()["report"] == report


# Single file

def test_single_file_returns_result(build, files):
    result = build().process_single_file(files[0])
    assert result.succeeded
    assert result.output_path.name == "a.eng.srt"


def test_single_file_raises_typed_errors(build, files):
    coordinator = build({"a.mkv": ProbeError("unreadable", "a.mkv"), "b.mkv": []})

    with pytest.raises(ProbeError):
        coordinator.process_single_file(files[0])
    with pytest.raises(NoSuitableTrackError):
        coordinator.process_single_file(files[1])


def test_single_file_failed_dispatch_raises_its_error(build, files, subrip):
    error = ExtractionError("mkvextract failed", 2)
    failure = DispatchResult(DispatchOutcome.FAILED, subrip[0], ExtractionStrategy.TEXT_COPY, error=error)
    coordinator = build(hooks={"c.mkv": lambda t, o: failure})

    with pytest.raises(SubForgeError) as excinfo:
        coordinator.process_single_file(files[2])

    assert excinfo.value is error


def test_single_file_manual_tool(build, files, subrip):
    manual = DispatchResult(
        DispatchOutcome.MANUAL_TOOL_REQUIRED, subrip[0], ExtractionStrategy.MANUAL_TOOL, guidance=VOBSUB_GUIDANCE
    )
    result = build(hooks={"a.mkv": lambda t, o: manual}).process_single_file(files[0])
    assert result.outcome is DispatchOutcome.MANUAL_TOOL_REQUIRED
    assert result.guidance == VOBSUB_GUIDANCE
