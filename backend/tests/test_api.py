from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient


def test_health_and_readiness(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers.get("X-Trace-Id")

    r = client.get("/readyz")
    assert r.status_code == 200, r.text

    from geoplotter.core.settings import get_settings

    monkeypatch.setenv("GEOPLOTTER_MAPBOX_PUBLIC_KEY", "")
    get_settings.cache_clear()
    r = client.get("/readyz")
    assert r.status_code == 503
    assert r.json() == {"status": "not_ready"}


def test_map_config(client: TestClient) -> None:
    r = client.get("/v1/map/config")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["access_token"] == "pk.test-token"
    assert body["center"] == [90.4125, 23.8103]
    assert body["zoom"] == 9.0


def test_decode_endpoint(client: TestClient) -> None:
    r = client.get("/v1/geohash/ezs42/decode")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["precision"] == 5
    assert body["point"]["latitude"] == pytest.approx(42.60498046875)
    assert body["bbox"]["min_lon"] == pytest.approx(-5.625)


def test_decode_endpoint_rejects_invalid_code(client: TestClient) -> None:
    r = client.get("/v1/geohash/tdra/decode", headers={"X-Trace-Id": "trace-1"})
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == "GEOHASH_INVALID"
    assert body["trace_id"] == "trace-1"
    assert body["details"]["code"] == "tdra"


def test_encode_endpoint(client: TestClient) -> None:
    r = client.get(
        "/v1/geohash/encode",
        params={"latitude": 42.605, "longitude": -5.603, "precision": 5},
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"code": "ezs42", "precision": 5}

    r = client.get("/v1/geohash/encode", params={"latitude": 91, "longitude": 0})
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_one_shot_map_counts_invalid_codes(client: TestClient) -> None:
    r = client.get("/v1/map", params={"geohashes": "tdr1vj5z,tdr1vj5y,tdra", "label": "Dhaka"})
    assert r.status_code == 200, r.text
    body = r.json()

    assert [s["source_id"] for s in body["sources"]] == ["geohashes"]
    assert len(body["sources"][0]["data"]["features"]) == 2
    assert body["sources"][0]["paint"] == {"fill-color": "#FF0000", "fill-opacity": 0.4}
    assert body["invalid_codes"] == ["tdra"]
    assert body["report"]["decode_error_count"] == 1
    assert body["report"]["displayed_count"] == 2
    assert body["report"]["label"] == "Dhaka"


def test_one_shot_map_with_failing_remote(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def fake_get(self, url: str, headers=None, timeout=None):  # noqa: ANN001
        req = httpx.Request("GET", url)
        if "down" in url:
            return httpx.Response(500, request=req)
        return httpx.Response(200, text="tdr1\ntdr1\n", request=req)

    monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)

    r = client.get(
        "/v1/map",
        params={
            "urls": "https://codes.test/up.txt,https://codes.test/down.txt",
            "colors": "00ff00",
            "mode": "markers",
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()

    assert body["report"]["source_counts"] == [2, 0]
    assert body["report"]["unavailable_sources"] == ["geo-2"]
    by_id = {s["source_id"]: s for s in body["sources"]}
    assert by_id["geo-1"]["paint"]["circle-color"] == "#00FF00"
    assert by_id["geo-2"]["paint"]["circle-color"] == "#FF0000"
    assert [a["text"] for a in body["annotations"]] == ["2"]


@pytest.mark.parametrize(
    ("params", "code"),
    [
        ({"colors": "red"}, "COLOR_INVALID"),
        ({"urls": "ftp://codes.test/a.txt"}, "URL_INVALID"),
        ({"urls": "https://ok.test/a,http://host:abc/x"}, "URL_INVALID"),
        ({"url": "http://[::1"}, "URL_INVALID"),
        ({"timer": "999999"}, "TIMER_INVALID"),
        ({"timer": "-1"}, "VALIDATION_ERROR"),
        ({"mode": "heatmap"}, "VALIDATION_ERROR"),
    ],
)
def test_bad_query_keys_are_rejected(
    client: TestClient, params: dict[str, str], code: str
) -> None:
    r = client.get("/v1/map", params=params)
    assert r.status_code == 422, r.text
    assert r.json()["code"] == code


def test_view_lifecycle(client: TestClient) -> None:
    r = client.post("/v1/views", params={"geohashes": "tdr1vj5z,tdr1vj5y"})
    assert r.status_code == 201, r.text
    body = r.json()
    view_id = body["view_id"]

    assert body["timer"] == 0
    assert body["runs_started"] == 1
    assert body["schedule_state"] == "idle"
    assert body["report"]["displayed_count"] == 2
    assert len(body["surface"]["sources"]["geohashes"]["features"]) == 2

    r = client.get(f"/v1/views/{view_id}")
    assert r.status_code == 200
    assert r.json()["surface"] == body["surface"]

    r = client.put(
        f"/v1/views/{view_id}/viewport",
        json={"longitude": 90.41, "latitude": 23.81, "zoom": 12},
    )
    assert r.status_code == 200, r.text
    assert r.json()["viewport"]["zoom"] == 12

    r = client.put(
        f"/v1/views/{view_id}", params={"geohashes": "u4pruydqqvj", "mode": "markers"}
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["view_id"] == view_id
    assert body["mode"] == "markers"
    assert body["viewport"] is None
    assert body["report"]["marker_count"] == 1

    r = client.delete(f"/v1/views/{view_id}")
    assert r.status_code == 204

    r = client.get(f"/v1/views/{view_id}")
    assert r.status_code == 404
    assert r.json()["code"] == "VIEW_NOT_FOUND"


def test_view_limit_is_enforced(client: TestClient) -> None:
    # conftest caps mounted views at 4.
    for _ in range(4):
        assert client.post("/v1/views").status_code == 201
    r = client.post("/v1/views")
    assert r.status_code == 429
    assert r.json()["code"] == "VIEW_LIMIT_REACHED"


def test_unknown_view_operations_404(client: TestClient) -> None:
    assert client.delete("/v1/views/nope").status_code == 404
    assert client.put("/v1/views/nope").status_code == 404
    r = client.put(
        "/v1/views/nope/viewport", json={"longitude": 0, "latitude": 0, "zoom": 1}
    )
    assert r.status_code == 404
