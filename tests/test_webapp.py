"""Tests for the Flask web UI."""

from __future__ import annotations

import io

import pytest
from lxml import etree

from webapp import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("RECON_FEATURES", "RECON_USER_COND", "RECON_GROUP_COND", "RECON_ANY_OBJECT_COND",
                 "RECON_PAGE_SIZE", "RECON_STORE_FILE"):
        monkeypatch.delenv(name, raising=False)
    app.config.update(
        TESTING=True,
        UPLOAD_FOLDER=str(tmp_path / "uploads"),
        OUTPUT_FOLDER=str(tmp_path / "downloads"),
    )
    with app.test_client() as client:
        yield client


def test_health(client) -> None:
    response = client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert body['store_configured'] is False
    assert {'csv', 'ldap'} <= set(body['connector_types'])


def test_index_shows_upload_form(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert b'name="file"' in response.data


def test_rejects_wrong_file_type(client) -> None:
    response = client.post('/report', data={'file': (io.BytesIO(b'a,b'), 'store.csv')},
                           content_type='multipart/form-data', follow_redirects=True)

    assert b'Invalid file type' in response.data


def test_runs_report_and_serves_download(client, store_workbook, tmp_path) -> None:
    """An uploaded workbook is reconciled and the report can be downloaded."""

    response = client.post(
        '/report',
        data={'file': (io.BytesIO(store_workbook.read_bytes()), 'store.xlsx'), 'features': 'key,username'},
        content_type='multipart/form-data',
    )

    assert response.status_code == 200
    assert b'Objects reported: 2' in response.data
    assert b'Users in store: 3, groups in store: 1' in response.data
    assert list((tmp_path / "uploads").iterdir()) == []

    report_name = next((tmp_path / "downloads").iterdir()).name
    download = client.get(f'/download/{report_name}')
    assert download.status_code == 200
    missing = etree.fromstring(download.data).find("reportlet/users/user/missing")
    assert missing.get("connObjectKeyValue") == "bob"


def test_bad_condition_is_flashed(client, store_workbook, tmp_path) -> None:
    response = client.post(
        '/report',
        data={'file': (io.BytesIO(store_workbook.read_bytes()), 'store.xlsx'), 'user_cond': '(status==a'},
        content_type='multipart/form-data',
        follow_redirects=True,
    )

    assert b'Report failed' in response.data
    assert list((tmp_path / "downloads").iterdir()) == []
