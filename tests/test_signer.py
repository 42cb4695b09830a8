"""Tests for request signing."""

import hashlib

import pytest

from errors import ConfigError
from models import DynamicRuleSet
from signer import RequestSigner

PATH = "/api2/v2/users/42/posts?limit=50&offset=0"


def test_headers_contain_every_signed_field(signer, credentials):
    headers = signer.sign(PATH, timestamp=1700000000)

    assert set(headers) == {"Accept", "Accept-Encoding", "User-Agent", "x-bc", "user-id", "Cookie", "sign", "time"}
    assert headers["User-Agent"] == credentials.user_agent
    assert headers["x-bc"] == credentials.client_token
    assert headers["user-id"] == credentials.identity_id
    assert headers["Cookie"] == "auth_id=123456; sess=sess-token"
    assert headers["time"] == "1700000000"


def test_signature_follows_rule_set(signer, rules):
    headers = signer.sign(PATH, timestamp=1700000000)

    message = "\n".join([rules.static_param, "1700000000", PATH, "123456"])
    digest = hashlib.sha1(message.encode("utf-8")).hexdigest()
    checksum = sum(digest.encode("ascii")[i] for i in rules.checksum_indexes) + rules.checksum_constant

    assert headers["sign"] == f"25000:{digest}:{checksum:x}:65a4c1fb"


def test_identical_inputs_give_identical_headers(signer):
    assert signer.sign(PATH, timestamp=1700000000) == signer.sign(PATH, timestamp=1700000000)


def test_timestamp_changes_signature(signer):
    first = signer.sign(PATH, timestamp=1700000000)
    second = signer.sign(PATH, timestamp=1700000001)

    assert first["sign"] != second["sign"]
    assert first["time"] != second["time"]


def test_path_changes_signature(signer):
    assert signer.sign(PATH, timestamp=1)["sign"] != signer.sign(PATH + "1", timestamp=1)["sign"]


def test_negative_checksum_is_rendered_unsigned(credentials):
    rules = DynamicRuleSet("p", (0,), -100000, "{}:{:x}")
    headers = RequestSigner(credentials, rules).sign(PATH, timestamp=5)

    assert "-" not in headers["sign"].split(":")[1]


def test_missing_rule_set_is_fatal(credentials):
    with pytest.raises(ConfigError):
        RequestSigner(credentials, None)


@pytest.mark.parametrize("broken", [
    {"checksum_indexes": [1], "checksum_constant": 1, "format": "{}"},
    {"static_param": "x", "checksum_indexes": [40], "checksum_constant": 1, "format": "{}"},
    {"static_param": "x", "checksum_indexes": ["1"], "checksum_constant": 1, "format": "{}"},
    {"static_param": "x", "checksum_indexes": [1], "checksum_constant": "1", "format": "{}"},
    {"static_param": "x", "checksum_indexes": [1], "checksum_constant": 1, "format": "no placeholder"},
    {"static_param": "x", "checksum_indexes": [1], "checksum_constant": 1, "format": "{}:{2}"},
])
def test_malformed_rules_are_rejected(broken):
    with pytest.raises(ConfigError):
        DynamicRuleSet.from_dict(broken)
