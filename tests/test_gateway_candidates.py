from __future__ import annotations

from cidgate.gateway.candidates import build_upstream_url, cid_candidates, grove_candidates

from tests.utils.gateway import CID_V0


def test_cid_candidates_single_entry() -> None:
    assert cid_candidates(f"{CID_V0}/deck.pptx") == [f"ipfs/{CID_V0}/deck.pptx"]
    assert cid_candidates(CID_V0, namespace="ipns") == [f"ipns/{CID_V0}"]


def test_grove_candidates_bare_identifier() -> None:
    assert grove_candidates("abc123") == ["abc123", "file/abc123"]


def test_grove_candidates_prefixed_identifier() -> None:
    assert grove_candidates("file/abc123") == ["abc123", "file/abc123"]


def test_build_upstream_url_trims_origin() -> None:
    assert build_upstream_url("https://gw.test//", "file/abc") == "https://gw.test/file/abc"
    assert build_upstream_url("https://gw.test", f"ipfs/{CID_V0}") == f"https://gw.test/ipfs/{CID_V0}"
