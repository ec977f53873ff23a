from citygrid.places_client import EntityRecord
from citygrid.reporting import (
    ProgressReporter,
    atomic_writer,
    export_filename,
    render_places_csv,
    write_places_csv,
)


def test_csv_quotes_and_empty_fields():
    records = [
        EntityRecord(
            id="p1",
            display_name='He said "hi"',
            rating=4.5,
            user_rating_count=10,
            formatted_address="1 Main St, Town",
            lat=10.0,
            lng=20.0,
        )
    ]
    lines = render_places_csv(records).splitlines()
    assert lines[0] == "id,name,rating,userRatingCount,websiteUri,formattedAddress,latitude,longitude"
    assert lines[1] == '"p1","He said ""hi""","4.5","10","","1 Main St, Town","10.0","20.0"'


def test_csv_all_missing_fields_render_empty_quoted():
    lines = render_places_csv([EntityRecord(id="p2")]).splitlines()
    assert lines[1] == '"p2","","","","","","",""'


def test_export_filename_collapses_whitespace():
    assert export_filename("New   York City") == "places_New_York_City.csv"
    assert export_filename("Kraków") == "places_Kraków.csv"


def test_write_places_csv_is_atomic(tmp_path):
    path = tmp_path / "places_Town.csv"
    write_places_csv(str(path), [EntityRecord(id="a")])
    write_places_csv(str(path), [EntityRecord(id="b")])
    assert '"b"' in path.read_text(encoding="utf-8")
    assert [p.name for p in tmp_path.iterdir()] == ["places_Town.csv"]


def test_atomic_writer_leaves_no_file_on_error(tmp_path):
    path = tmp_path / "out.csv"
    try:
        with atomic_writer(str(path)) as f:
            f.write("partial")
            raise RuntimeError("disk full")
    except RuntimeError:
        pass
    assert list(tmp_path.iterdir()) == []


def test_progress_reporter_writes_snapshot(tmp_path):
    import json

    path = tmp_path / "progress.json"
    progress = ProgressReporter(output_path=str(path), log_every=1, write_interval_seconds=0.0)
    progress.set_stage("searching", total_estimate=4)
    progress.advance(unique_records=2)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["stage"] == "searching"
    assert data["processed_count"] == 1
    assert data["total_estimate"] == 4
    assert data["unique_records"] == 2


def test_csv_has_no_trailing_newline():
    text = render_places_csv([EntityRecord(id="a"), EntityRecord(id="b")])
    assert not text.endswith("\n")
    assert text.split("\n")[-1] == '"b","","","","","","",""'
    assert render_places_csv([]) == "id,name,rating,userRatingCount,websiteUri,formattedAddress,latitude,longitude"
