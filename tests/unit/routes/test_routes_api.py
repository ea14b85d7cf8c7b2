import io
import os
import zipfile

import pytest


@pytest.mark.unit
def test_service_info_lists_endpoints(client):
    r = client.get('/')
    assert r.status_code == 200
    data = r.get_json()
    assert data["status"] == "ok"
    assert data["service"] == "YouTube Downloader API"
    assert set(data["endpoints"]) == {"probe", "download", "playlist"}


@pytest.mark.unit
def test_probe_missing_url_returns_400(client):
    r = client.get('/probe')
    assert r.status_code == 400
    assert r.get_json() == {"error": "Missing required parameter: url"}


@pytest.mark.unit
def test_probe_returns_camel_case_metadata(client):
    r = client.get('/probe', query_string={"url": "https://www.youtube.com/watch?v=abc"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["title"] == "X"
    assert data["uploadDate"] == "20240101"
    assert data["viewCount"] == 10
    assert data["formats"][0]["formatId"] == "18"
    assert data["formats"][1]["filesize"] == 1024


@pytest.mark.unit
def test_probe_tool_failure_maps_to_500(client):
    r = client.get('/probe', query_string={"url": "https://www.youtube.com/watch?v=unavailable"})
    assert r.status_code == 500
    data = r.get_json()
    assert data["error"] == "Failed to probe video"
    assert data["error_code"] == "tool_failure"
    assert "Video unavailable" in data["message"]


@pytest.mark.unit
@pytest.mark.parametrize("path", ['/download', '/playlist'])
def test_missing_url_field_returns_400(client, path):
    r = client.post(path, json={})
    assert r.status_code == 400
    assert r.get_json() == {"error": "Missing required field: url"}


@pytest.mark.unit
def test_url_that_looks_like_an_option_is_rejected(client, stub_provisioner):
    r = client.post('/download', json={"url": "--exec=rm -rf /"})
    assert r.status_code == 400
    assert stub_provisioner.calls == 0


@pytest.mark.unit
def test_download_streams_attachment_and_cleans_up(client, settings):
    r = client.post('/download', json={"url": "https://www.youtube.com/watch?v=abc"})
    assert r.status_code == 200
    assert r.headers["Content-Type"] == "application/octet-stream"
    assert r.headers["Content-Disposition"] == 'attachment; filename="video.mp4"'
    assert r.headers["Content-Length"] == "500"
    assert r.data == b"0123456789" * 50
    r.close()
    assert os.listdir(settings.base_output_dir) == []


@pytest.mark.unit
def test_download_tool_failure_maps_to_500(client, settings):
    r = client.post('/download', json={"url": "https://www.youtube.com/watch?v=unavailable"})
    assert r.status_code == 500
    data = r.get_json()
    assert data["error"] == "Download failed"
    assert data["error_code"] == "tool_failure"
    assert "Video unavailable" in data["message"]
    assert os.listdir(settings.base_output_dir) == []


@pytest.mark.unit
def test_download_with_no_artifacts_maps_to_500(client):
    r = client.post('/download', json={"url": "https://www.youtube.com/watch?v=empty"})
    assert r.status_code == 500
    assert r.get_json()["error_code"] == "no_artifacts"


@pytest.mark.unit
def test_playlist_streams_zip(client, settings):
    r = client.post('/playlist', json={"url": "https://www.youtube.com/playlist?list=PL1", "format": "18"})
    assert r.status_code == 200
    assert r.headers["Content-Type"] == "application/zip"
    assert r.headers["Content-Disposition"] == 'attachment; filename="playlist.zip"'
    with zipfile.ZipFile(io.BytesIO(r.data)) as archive:
        assert sorted(archive.namelist()) == ["1 - alpha.mp4", "2 - beta.mp4", "3 - gamma.mp4"]
    r.close()
    assert os.listdir(settings.base_output_dir) == []


@pytest.mark.unit
def test_provisioning_failure_maps_to_500(client, stub_provisioner):
    stub_provisioner.error = "Downloaded yt-dlp binary is not working"
    r = client.post('/playlist', json={"url": "https://www.youtube.com/playlist?list=PL1"})
    assert r.status_code == 500
    data = r.get_json()
    assert data["error"] == "Playlist download failed"
    assert data["error_code"] == "provision_failed"


@pytest.mark.unit
def test_request_id_is_echoed(client):
    r = client.get('/', headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


@pytest.mark.unit
def test_unknown_route_returns_404(client):
    assert client.get('/nope').status_code == 404


@pytest.mark.unit
@pytest.mark.parametrize("path", ['/download', '/playlist'])
@pytest.mark.parametrize("body, message", [
    (["https://www.youtube.com/watch?v=abc"], "Missing required field: url"),
    ("https://www.youtube.com/watch?v=abc", "Missing required field: url"),
    ({"url": None}, "Missing required field: url"),
    ({"url": "   "}, "Missing required field: url"),
    ({"url": 123}, "Invalid field: url"),
    ({"url": ["https://www.youtube.com/watch?v=abc"]}, "Invalid field: url"),
    ({"url": "https://www.youtube.com/watch?v=abc", "format": {"id": 18}}, "Invalid field: format"),
])
def test_malformed_json_body_returns_400(client, stub_provisioner, path, body, message):
    r = client.post(path, json=body)
    assert r.status_code == 400
    assert r.get_json() == {"error": message}
    assert stub_provisioner.calls == 0


@pytest.mark.unit
def test_non_json_body_returns_400(client):
    r = client.post('/download', data="url=https://www.youtube.com/watch?v=abc",
                    content_type='application/x-www-form-urlencoded')
    assert r.status_code == 400
    assert r.get_json() == {"error": "Missing required field: url"}
