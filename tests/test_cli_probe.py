from __future__ import annotations

import httpx
import pytest

from cidgate.cli import probe


def test_build_probe_url_encodes_grove_uri():
    url = probe.build_probe_url("http://localhost:3000/", "lens://abc123", filename="deck.pptx")

    assert url == "http://localhost:3000/grove?uri=lens%3A%2F%2Fabc123&filename=deck.pptx"


def test_build_probe_url_for_ipfs_path():
    url = probe.build_probe_url(
        "http://proxy",
        "/QmHash/some dir/file.txt",
        ipfs=True,
        gateway="https://w3s.link",
    )

    assert url == "http://proxy/api/ipfs/QmHash/some%20dir/file.txt?gateway=https%3A%2F%2Fw3s.link"


def test_parse_args_defaults(monkeypatch):
    monkeypatch.delenv("CIDGATE_PROXY_BASE", raising=False)
    args = probe.parse_args([])

    assert args.resource == probe.DEFAULT_LENS_URI
    assert args.base == probe.DEFAULT_PROXY_BASE
    assert args.method == "HEAD"
    assert args.ipfs is False


@pytest.mark.asyncio
async def test_run_prints_response_summary(monkeypatch, capsys):
    seen = {}

    async def fake_probe(url: str, method: str, timeout: float) -> httpx.Response:
        seen.update(url=url, method=method, timeout=timeout)
        return httpx.Response(200, headers={"Content-Type": "image/png", "Content-Length": "12"})

    monkeypatch.setattr(probe, "probe", fake_probe)

    exit_code = await probe.run(["lens://abc123", "--base", "http://proxy", "--timeout", "5"])

    assert exit_code == 0
    assert seen == {"url": "http://proxy/grove?uri=lens%3A%2F%2Fabc123", "method": "HEAD", "timeout": 5.0}
    output = capsys.readouterr().out
    assert "Status: 200 OK" in output
    assert "Content-Type: image/png" in output
    assert "Content-Length: 12" in output


@pytest.mark.asyncio
async def test_run_prints_error_body_for_get(monkeypatch, capsys):
    async def fake_probe(url: str, method: str, timeout: float) -> httpx.Response:
        return httpx.Response(404, text="Grove resource not found.")

    monkeypatch.setattr(probe, "probe", fake_probe)

    exit_code = await probe.run(["abc123", "--method", "GET"])

    assert exit_code == 0
    assert "Grove resource not found." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_reports_transport_failure(monkeypatch, capsys):
    async def fake_probe(url: str, method: str, timeout: float) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(probe, "probe", fake_probe)

    assert await probe.run(["abc123"]) == 1
    assert "Request failed: connection refused" in capsys.readouterr().err
