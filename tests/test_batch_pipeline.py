from pathlib import Path

import pytest
from PIL import Image

from conftest import FakeAnalysisService, FakeObjectStore, RecordingRenderer, face_result, make_image_bytes
from mediaflow.core.errors import RemoteCallError, ScratchConflictError
from mediaflow.core.scratch import ScratchArea
from mediaflow.services.annotator import FaceAnnotator
from mediaflow.services.batch_pipeline import ARTIFACTS, DOWNLOADS, BatchPipeline
from mediaflow.services.report_aggregator import ReportAggregator


def _scratch(root: Path) -> ScratchArea:
    return ScratchArea({DOWNLOADS: root / "read_images", ARTIFACTS: root / "face_details_images"})


def _copy(source, result, destination):
    destination.write_bytes(Path(source).read_bytes())
    return destination


def test_one_record_per_result_and_absence_per_failure(tmp_path):
    objects = {f"images/{i}.jpg": make_image_bytes() for i in range(5)}
    store = FakeObjectStore(objects, fail_download={"images/1.jpg"})
    analysis = FakeAnalysisService({
        "images/0.jpg": [face_result(), face_result(gender="Female")],
        "images/2.jpg": RemoteCallError("throttled"),
        "images/3.jpg": [],
        "images/4.jpg": [face_result()],
    })

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", _copy)

    assert [r.object_ref.key for r in records] == [
        "images/0.jpg", "images/0.jpg", "images/1.jpg", "images/2.jpg", "images/3.jpg", "images/4.jpg"
    ]
    assert [r.is_absent for r in records] == [False, False, True, True, True, False]
    assert "download failed" in records[2].error
    assert "analysis failed" in records[3].error
    assert records[4].error is None


def test_two_object_scenario_feeds_aggregator(tmp_path):
    store = FakeObjectStore(
        {"images/a.jpg": make_image_bytes(), "images/b.jpg": make_image_bytes()},
        fail_download={"images/b.jpg"},
    )
    analysis = FakeAnalysisService({"images/a.jpg": [face_result(confidence=0.98)]})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", FaceAnnotator())
    renderer = RecordingRenderer()
    text_report, table_report = ReportAggregator(renderer=renderer).aggregate(records)

    assert len(records) == 2
    assert records[0].result.attributes["gender"].value == "Male"
    assert records[0].artifact_path.exists()
    assert records[1].is_absent
    assert len(text_report.blocks) == 1
    assert len(table_report.rows) == 2
    assert table_report.rows[1][1:] == ["", "", "", ""]


def test_download_stage_removed_and_artifacts_kept(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})
    scratch = _scratch(tmp_path)

    records = BatchPipeline(store, analysis, scratch=scratch).run("images/", _copy)

    assert not scratch.path(DOWNLOADS).exists()
    assert records[0].artifact_path == scratch.path(ARTIFACTS) / "a.jpg"
    assert records[0].artifact_path.exists()


def test_multiple_results_get_distinct_artifacts(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result(), face_result(), face_result()]})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", _copy)

    names = [r.artifact_path.name for r in records]
    assert names == ["a.jpg", "a_1.jpg", "a_2.jpg"]


def _write_gender(source, result, destination):
    destination.write_text(result.value_of("gender"))
    return destination


@pytest.mark.parametrize("max_workers", [1, 3])
def test_suffixed_result_does_not_collide_with_similar_key(tmp_path, max_workers):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes(), "images/a_1.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({
        "images/a.jpg": [face_result(gender="Male"), face_result(gender="Female")],
        "images/a_1.jpg": [face_result(gender="Other")],
    })

    records = BatchPipeline(
        store, analysis, scratch=_scratch(tmp_path), max_workers=max_workers
    ).run("images/", _write_gender)

    paths = [r.artifact_path for r in records]
    assert len(records) == 3
    assert len(set(paths)) == 3
    for record in records:
        assert record.artifact_path.read_text() == record.result.value_of("gender")


def test_sequential_collision_moves_to_next_free_suffix(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes(), "images/a_1.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({
        "images/a.jpg": [face_result(), face_result()],
        "images/a_1.jpg": [face_result()],
    })

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", _copy)

    assert [r.artifact_path.name for r in records] == ["a.jpg", "a_1.jpg", "a_1_1.jpg"]


def test_analysis_only_run_needs_no_artifact_stage(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})
    scratch = ScratchArea({DOWNLOADS: tmp_path / "read_images"})

    records = BatchPipeline(store, analysis, scratch=scratch).run("images/")

    assert len(records) == 1
    assert records[0].artifact_path is None
    assert records[0].error is None
    assert list(tmp_path.iterdir()) == []


def test_transform_without_artifact_stage_is_rejected(tmp_path):
    scratch = ScratchArea({DOWNLOADS: tmp_path / "read_images"})
    pipeline = BatchPipeline(FakeObjectStore({}), FakeAnalysisService(), scratch=scratch)

    with pytest.raises(ValueError):
        pipeline.run("images/", _copy)
    assert not (tmp_path / "read_images").exists()


def test_existing_scratch_directory_fails_fast(tmp_path):
    (tmp_path / "face_details_images").mkdir()
    (tmp_path / "face_details_images" / "stale.jpg").write_bytes(b"old")
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})

    with pytest.raises(ScratchConflictError):
        BatchPipeline(store, FakeAnalysisService(), scratch=_scratch(tmp_path)).run("images/", _copy)

    assert store.downloads == []
    assert not (tmp_path / "read_images").exists()
    assert (tmp_path / "face_details_images" / "stale.jpg").exists()


def test_replace_existing_clears_stale_output(tmp_path):
    (tmp_path / "face_details_images").mkdir()
    (tmp_path / "face_details_images" / "stale.jpg").write_bytes(b"old")
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})

    BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", _copy, replace_existing=True)

    assert not (tmp_path / "face_details_images" / "stale.jpg").exists()


def test_listing_failure_aborts_and_cleans_up(tmp_path):
    store = FakeObjectStore(fail_list=True)

    with pytest.raises(RemoteCallError):
        BatchPipeline(store, FakeAnalysisService(), scratch=_scratch(tmp_path)).run("images/", _copy)

    assert not (tmp_path / "read_images").exists()
    assert not (tmp_path / "face_details_images").exists()


def test_transform_skipped_when_required_attribute_missing(tmp_path):
    partial = face_result().model_copy(update={"attributes": {"gender": face_result().attributes["gender"]}})
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [partial]})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", FaceAnnotator())

    assert len(records) == 1
    assert not records[0].is_absent
    assert records[0].artifact_path is None


def test_transform_failure_is_recorded(tmp_path):
    def broken(source, result, destination):
        raise OSError("disk full")

    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", broken)

    assert records[0].result is not None
    assert "transform failed" in records[0].error


def test_order_is_stable_with_workers(tmp_path):
    keys = [f"images/{i:02d}.jpg" for i in range(12)]
    store = FakeObjectStore({key: make_image_bytes(size=(40, 30)) for key in keys})
    analysis = FakeAnalysisService({key: [face_result(gender=key)] for key in keys})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path), max_workers=4).run("images/", _copy)

    assert [r.result.value_of("gender") for r in records] == keys


def test_upload_sets_uploaded_ref(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})
    pipeline = BatchPipeline(store, analysis, scratch=_scratch(tmp_path), upload_prefix="annotated/")

    records = pipeline.run("images/", _copy)

    assert records[0].uploaded_ref.key == "annotated/a.jpg"
    assert records[0].uploaded_ref.container == "media"
    assert store.uploads[0][0] == "a.jpg"


def test_compressor_runs_over_artifacts(tmp_path):
    class CountingCompressor:
        def __init__(self):
            self.directories = []

        def compress(self, directory):
            self.directories.append(directory)

    compressor = CountingCompressor()
    scratch = _scratch(tmp_path)
    store = FakeObjectStore({"images/a.jpg": make_image_bytes()})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})

    BatchPipeline(store, analysis, scratch=scratch, compressor=compressor).run("images/", _copy)

    assert compressor.directories == [scratch.path(ARTIFACTS)]


def test_annotated_artifact_has_target_size(tmp_path):
    store = FakeObjectStore({"images/a.jpg": make_image_bytes(size=(1024, 768))})
    analysis = FakeAnalysisService({"images/a.jpg": [face_result()]})

    records = BatchPipeline(store, analysis, scratch=_scratch(tmp_path)).run("images/", FaceAnnotator())

    with Image.open(records[0].artifact_path) as img:
        assert img.size == (800, 600)
