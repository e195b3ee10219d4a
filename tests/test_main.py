"""Tests for the terminal handoff driver."""

import asyncio
import base64

import httpx

from expiry_tracker.config import ClientSettings
from expiry_tracker.containers import build_client_container
from expiry_tracker.main import build_parser, run_handoff, run_local
from tests.conftest import JPEG_BYTES

SESSION_ID = "f" * 32


def _handler(request: httpx.Request) -> httpx.Response:
    if request.method == "POST" and request.url.path == "/session":
        return httpx.Response(
            200,
            json={
                "sessionId": SESSION_ID,
                "deepLink": f"expiryapp://camera?session={SESSION_ID}",
            },
        )
    if request.url.path == f"/session/{SESSION_ID}":
        image = {
            "filename": "shelf.jpg",
            "contentType": "image/jpeg",
            "data": base64.b64encode(JPEG_BYTES).decode(),
        }
        return httpx.Response(
            200, json={"sessionId": SESSION_ID, "imageCount": 1, "images": [image]}
        )
    if request.url.path == "/analyze":
        return httpx.Response(200, json={"product": "Milk", "expiryDate": "2020-01-01"})
    if request.url.path == "/extract-text":
        return httpx.Response(200, json={"success": True, "extractedText": "EXP"})
    return httpx.Response(404, json={"error": "Not found"})


def _container(handler, max_attempts: int = 5):  # type: ignore[no-untyped-def]
    links: list[str] = []
    container = build_client_container(
        ClientSettings(
            server_url="https://handoff.test",
            poll_interval_seconds=0,
            poll_max_attempts=max_attempts,
        ),
        open_link=links.append,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return container, links


def test_run_handoff_prints_board(capsys) -> None:
    container, links = _container(_handler)

    exit_code = asyncio.run(run_handoff(container))

    captured = capsys.readouterr()
    assert exit_code == 0
    assert links == [f"expiryapp://camera?session={SESSION_ID}"]
    assert "Received 1 images (valid=0 expiring=0 expired=1)" in captured.out
    assert '"shelf.jpg","Milk","2020-01-01","Expired"' in captured.out


def test_run_handoff_reports_timeout(capsys) -> None:
    def empty_session(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/session":
            return _handler(request)
        return httpx.Response(
            200, json={"sessionId": SESSION_ID, "imageCount": 0, "images": []}
        )

    container, _ = _container(empty_session, max_attempts=2)

    exit_code = asyncio.run(run_handoff(container))

    assert exit_code == 1
    assert "Handoff ended: timed_out" in capsys.readouterr().out


def test_run_local_analyzes_selected_files(tmp_path, capsys) -> None:
    first = tmp_path / "fridge.jpg"
    second = tmp_path / "pantry.png"
    first.write_bytes(JPEG_BYTES)
    second.write_bytes(JPEG_BYTES)
    container, links = _container(_handler)

    exit_code = asyncio.run(run_local(container, [first, second]))

    captured = capsys.readouterr()
    assert exit_code == 0
    assert links == []
    assert "Analyzed 2 images (valid=0 expiring=0 expired=2)" in captured.out
    assert '"fridge.jpg","Milk","2020-01-01","Expired"' in captured.out
    assert '"pantry.png","Milk","2020-01-01","Expired"' in captured.out
    assert [item.extracted_text for item in container.board.items] == ["EXP", "EXP"]


def test_parser_defaults_to_handoff() -> None:
    assert build_parser().parse_args([]).files == []
    assert [path.name for path in build_parser().parse_args(["a.jpg"]).files] == [
        "a.jpg"
    ]
