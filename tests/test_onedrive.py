from datetime import datetime, timedelta, timezone

import pytest
import responses

from resticwatch.onedrive import Folder, OneDriveClient, OneDriveError

BASE = "https://graph.example.com/v1.0"
NOW = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _client():
    return OneDriveClient("token", base_url=BASE)


def _children(folder_id):
    return f"{BASE}/me/drive/items/{folder_id}/children"


def _register_repo(mocked, files):
    mocked.get(
        _children("client1"),
        json={
            "value": [
                {"id": "data1", "name": "data", "folder": {}},
                {"id": "snap1", "name": "snapshots", "folder": {"childCount": 2}},
            ]
        },
    )
    mocked.get(_children("snap1"), json={"value": files})


def test_top_level_folders_filters_files(mocked):
    mocked.get(
        f"{BASE}/me/drive/root/children",
        json={
            "value": [
                {"id": "A", "name": "Backups", "folder": {}, "size": 2048},
                {"id": "B", "name": "notes.txt", "file": {}},
                {"id": "C", "name": "Null", "folder": None},
                "junk",
            ]
        },
    )
    folders = _client().get_top_level_folders()
    assert folders == [Folder(id="A", name="Backups", size=2048)]
    headers = mocked.calls[0].request.headers
    assert headers["Authorization"] == "Bearer token"


def test_folder_contents_parses_times(mocked):
    mocked.get(
        _children("X"),
        json={
            "value": [
                {
                    "id": "f1",
                    "name": "a",
                    "file": {},
                    "size": 10,
                    "createdDateTime": "2024-05-02T01:00:00Z",
                    "lastModifiedDateTime": "2024-05-02T01:00:00.1234567+02:00",
                },
                {"id": "f2", "name": "b", "file": {}, "createdDateTime": "garbage"},
                {"id": "d", "name": "dir", "folder": {}},
            ]
        },
    )
    files = _client().get_folder_contents("X")
    assert [f.name for f in files] == ["a", "b"]
    assert files[0].size == 10
    assert files[0].created_time == datetime(2024, 5, 2, 1, 0, tzinfo=timezone.utc)
    assert files[0].modified_time.utcoffset() == timedelta(hours=2)
    assert files[0].modified_time.microsecond == 123456
    assert files[1].created_time is None


def test_http_error_raises(mocked):
    mocked.get(_children("X"), status=401, json={})
    with pytest.raises(OneDriveError, match="API request failed with status 401"):
        _client().get_subfolders("X")


def test_invalid_json_raises(mocked):
    mocked.get(_children("X"), body="not json")
    with pytest.raises(OneDriveError, match="failed to decode response"):
        _client().get_subfolders("X")


def test_all_snapshots_reads_snapshots_folder(mocked):
    _register_repo(mocked, [{"id": "s1", "name": "one", "file": {}}])
    files = _client().get_all_snapshots("client1")
    assert [f.id for f in files] == ["s1"]


def test_missing_snapshots_folder(mocked):
    mocked.get(_children("client1"), json={"value": [{"id": "d", "name": "data", "folder": {}}]})
    with pytest.raises(OneDriveError) as exc:
        _client().get_all_snapshots("client1")
    assert "snapshots folder not found in folder client1" in str(exc.value)
    assert "Available subfolders: [data]" in str(exc.value)


def test_subfolder_failure_is_wrapped(mocked):
    mocked.get(_children("client1"), status=500, json={})
    with pytest.raises(OneDriveError, match="failed to get subfolders for folder client1"):
        _client().get_all_snapshots("client1")


def test_check_today_backups_uses_24_hour_window(mocked):
    _register_repo(
        mocked,
        [
            {"id": "1", "name": "recent", "file": {}, "createdDateTime": "2024-05-02T01:00:00Z"},
            {"id": "2", "name": "old", "file": {}, "createdDateTime": "2024-04-30T12:00:00Z"},
            {"id": "3", "name": "edge", "file": {}, "createdDateTime": "2024-05-01T12:00:00Z"},
            {"id": "4", "name": "undated", "file": {}},
        ],
    )
    has_backup, recent = _client().check_today_backups("client1", now=NOW)
    assert has_backup is True
    assert [f.name for f in recent] == ["recent"]


def test_check_today_backups_none_recent(mocked):
    _register_repo(
        mocked,
        [{"id": "2", "name": "old", "file": {}, "createdDateTime": "2024-04-30T12:00:00Z"}],
    )
    assert _client().check_today_backups("client1", now=NOW) == (False, [])