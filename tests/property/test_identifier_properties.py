"""Property-based tests for identifier normalization and candidate ordering."""

from __future__ import annotations

from hypothesis import given, strategies as st

from cidgate.gateway.candidates import FILE_PREFIX, grove_candidates
from cidgate.gateway.identifiers import is_cid, normalize_grove_resource

BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

resource_ids = st.text(alphabet="abcdef0123456789", min_size=1, max_size=64)


@given(st.text(alphabet=BASE58, min_size=44, max_size=60))
def test_qm_prefixed_base58_is_cid(body):
    assert is_cid(f"Qm{body}")


@given(st.text(alphabet=BASE58, min_size=20, max_size=60))
def test_bafy_prefixed_base58_is_cid(body):
    assert is_cid(f"bafy{body}")


@given(st.text(alphabet=BASE58, max_size=43))
def test_short_qm_values_are_rejected(body):
    assert not is_cid(f"Qm{body}")


@given(st.text(alphabet=BASE58, min_size=44, max_size=60), st.sampled_from("0OIl/ "))
def test_characters_outside_base58_are_rejected(body, bad):
    assert not is_cid(f"Qm{body}{bad}")


@given(resource_ids, st.sampled_from(["lens://", "grove://", "lens:///", "https://api.grove.storage/", "/", ""]))
def test_locator_prefixes_are_stripped(resource_id, prefix):
    assert normalize_grove_resource(f"  {prefix}{resource_id} ") == resource_id


@given(st.text(max_size=80))
def test_normalization_is_idempotent(value):
    once = normalize_grove_resource(value)
    assert normalize_grove_resource(once) == once
    assert not once.startswith("/")


@given(resource_ids)
def test_grove_candidates_cover_both_forms(resource_id):
    bare = grove_candidates(resource_id)
    prefixed = grove_candidates(f"{FILE_PREFIX}{resource_id}")

    assert bare == prefixed == [resource_id, f"{FILE_PREFIX}{resource_id}"]
    assert len(set(bare)) == 2


@given(resource_ids, st.lists(st.sampled_from(["lens://", "grove://", "https://gw.test/"]), min_size=1, max_size=4))
def test_nested_locators_unwrap_to_the_resource(resource_id, prefixes):
    assert normalize_grove_resource("".join(prefixes) + resource_id) == resource_id
