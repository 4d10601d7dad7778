from io import BytesIO

from openpyxl import load_workbook

from conftest import RecordingRenderer, face_result
from mediaflow.schemas.batch_models import BatchRecord, ObjectRef
from mediaflow.services.report_aggregator import VOICE_LAYOUT, ReportAggregator


def _records(count):
    return [
        BatchRecord(object_ref=ObjectRef(container="media", key=f"images/{i}.jpg"), result=face_result(gender=f"G{i}"))
        for i in range(count)
    ]


def test_text_block_format():
    record = _records(1)[0]

    block = ReportAggregator(renderer=RecordingRenderer()).render_block(record)

    assert block.splitlines() == [
        "Details of image: 0.jpg",
        "Gender: G0, with a confidence level of 0.98",
        "Age Range: 25-35, with a confidence level of 0.99",
        "Beard: False, with a confidence level of 0.9",
        "Smile: True, with a confidence level of 0.8",
        "Bounding Box Details: Width: 0.25, Height: 0.5, Left: 0.25, Top: 0.25",
    ]


def test_blocks_and_rows_follow_input_order():
    records = _records(4)

    text_report, table_report = ReportAggregator(renderer=RecordingRenderer()).aggregate(records)

    assert [block.splitlines()[1] for block in text_report.blocks] == [
        f"Gender: G{i}, with a confidence level of 0.98" for i in range(4)
    ]
    assert [row[0] for row in table_report.rows] == [f"s3://media/images/{i}.jpg" for i in range(4)]


def test_absence_record_gets_row_but_no_block():
    records = _records(1) + [BatchRecord.absent(ObjectRef(container="media", key="images/missing.jpg"))]

    text_report, table_report = ReportAggregator(renderer=RecordingRenderer()).aggregate(records)

    assert len(text_report.blocks) == 1
    assert table_report.rows[1] == ["s3://media/images/missing.jpg", "", "", "", ""]


def test_absence_row_without_object_column_is_all_empty():
    absent = BatchRecord.absent(ObjectRef(container="polly", key="voices/unknown"))

    _, table_report = ReportAggregator(layout=VOICE_LAYOUT, renderer=RecordingRenderer()).aggregate([absent])

    assert table_report.rows == [[""] * len(VOICE_LAYOUT.fields)]


def test_empty_input_produces_header_only_table():
    renderer = RecordingRenderer()

    text_report, table_report = ReportAggregator(renderer=renderer).aggregate([])

    assert text_report.content == ""
    assert table_report.rows == []
    assert renderer.calls == [(["Object", "Gender", "Age Range", "Beard", "Smile"], [])]


def test_preview_is_capped_with_pointer_to_saved_report(tmp_path):
    aggregator = ReportAggregator(renderer=RecordingRenderer(), preview_limit=3)
    text_report, _ = aggregator.aggregate(_records(5))

    preview = aggregator.preview(text_report, saved_to=tmp_path / "Face_details.txt")

    assert preview.count("Details of image:") == 3
    assert "Showing the first 3 of 5 records" in preview
    assert "Face_details.txt" in preview


def test_preview_without_overflow_has_no_pointer():
    aggregator = ReportAggregator(renderer=RecordingRenderer(), preview_limit=3)
    text_report, _ = aggregator.aggregate(_records(2))

    preview = aggregator.preview(text_report)

    assert preview.count("Details of image:") == 2
    assert "Showing the first" not in preview


def test_persisted_text_contains_every_block(tmp_path):
    aggregator = ReportAggregator(renderer=RecordingRenderer())
    text_report, table_report = aggregator.aggregate(_records(5))

    text_path, table_path = aggregator.persist(
        text_report, table_report, tmp_path / "Face_details.txt", tmp_path / "face_details.xlsx"
    )

    content = text_path.read_text(encoding="utf-8")
    assert content.count("Details of image:") == 5
    assert content == text_report.content
    assert table_path.read_bytes() == b"table"


def test_persist_appends_to_existing_text_report(tmp_path):
    aggregator = ReportAggregator(renderer=RecordingRenderer())
    text_report, table_report = aggregator.aggregate(_records(1))
    text_path = tmp_path / "Face_details.txt"
    text_path.write_text("previous run\n", encoding="utf-8")

    aggregator.persist(text_report, table_report, text_path, tmp_path / "face_details.xlsx")

    assert text_path.read_text(encoding="utf-8").startswith("previous run\n")


def test_workbook_round_trip():
    records = _records(2) + [BatchRecord.absent(ObjectRef(container="media", key="images/x.jpg"))]

    _, table_report = ReportAggregator().aggregate(records)
    sheet = load_workbook(BytesIO(table_report.document)).active
    rows = [[cell if cell is not None else "" for cell in row] for row in sheet.iter_rows(values_only=True)]

    assert rows[0] == ["Object", "Gender", "Age Range", "Beard", "Smile"]
    assert rows[1] == ["s3://media/images/0.jpg", "G0", "25-35", "False", "True"]
    assert rows[3] == ["s3://media/images/x.jpg", "", "", "", ""]


def test_voice_layout_has_no_object_column():
    from mediaflow.integrations.polly_client import voice_to_record

    record = voice_to_record({
        "Gender": "Female",
        "Id": "Joanna",
        "LanguageCode": "en-US",
        "LanguageName": "US English",
        "Name": "Joanna",
        "SupportedEngines": ["neural", "standard"],
    })
    aggregator = ReportAggregator(layout=VOICE_LAYOUT, renderer=RecordingRenderer())

    text_report, table_report = aggregator.aggregate([record])

    assert table_report.headers[0] == "Gender of Voice"
    assert table_report.rows == [["Female", "Joanna", "en-US", "US English", "Joanna", "neural, standard"]]
    assert text_report.blocks[0].splitlines()[1] == "Voice ID: Joanna"
