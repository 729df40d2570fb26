"""
Unit tests for the helpers under ``core`` and the pair rules.
"""

import logging

import pytest

from backoffice_api.app import main
from backoffice_api.app.core.config import settings
from backoffice_api.app.core.errors import ErrorCode, ServiceError
from backoffice_api.app.core.logging_config import build_formatter, setup_logging
from backoffice_api.app.core.runtime_settings import SettingsSnapshot, deserialize_value
from backoffice_api.app.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    resolve_scope,
    verify_password,
)
from backoffice_api.app.core.sql import OMIT, UpdateField, build_update, placeholders
from backoffice_api.app.schemas.product import PairItem
from backoffice_api.app.services.pairs_service import validate_pairs
from backoffice_api.app.services.validation import check_batch_size, unique_ids


def test_build_update_skips_omitted_fields():
    sql, params = build_update(
        "products",
        [
            UpdateField("product_code", "DESK-002"),
            UpdateField("status_code", OMIT),
            UpdateField("translation_key", None),
            UpdateField("updated_at", expression="CURRENT_TIMESTAMP"),
        ],
        [("id", 7)],
    )
    assert sql == "UPDATE products SET product_code = ?, translation_key = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?"
    assert params == ("DESK-002", None, 7)


def test_build_update_with_nothing_set():
    assert build_update("products", [UpdateField("product_code")], [("id", 1)]) is None


def test_omit_is_a_falsy_singleton():
    assert not OMIT
    assert type(OMIT)() is OMIT


def test_placeholders():
    assert placeholders(3) == "?, ?, ?"


def test_unique_ids_keeps_first_seen_order():
    assert unique_ids([3, 1, 3, 2, 1]) == [3, 1, 2]


def test_check_batch_size():
    check_batch_size(list(range(5)), "IDs", limit=5)
    with pytest.raises(ServiceError) as info:
        check_batch_size(list(range(6)), "IDs", limit=5)
    assert info.value.message == "IDs exceed limit 5"


@pytest.mark.parametrize(
    "stored, expected",
    [("1", True), ("true", True), ("0", False), ("false", False), ("", False)],
)
def test_deserialize_bool(stored, expected):
    assert deserialize_value(stored, "bool") is expected


def test_snapshot_get_bool():
    snapshot = SettingsSnapshot({"flag.on": True, "flag.text": "Yes", "flag.off": 0})
    assert snapshot.get_bool("flag.on", False) is True
    assert snapshot.get_bool("flag.text", False) is True
    assert snapshot.get_bool("flag.off", True) is False
    assert snapshot.get_bool("missing", True) is True


def test_snapshot_is_read_only():
    snapshot = SettingsSnapshot({"a": 1})
    with pytest.raises(TypeError):
        snapshot.values["a"] = 2


@pytest.mark.parametrize(
    "permissions, expected",
    [
        ({"admin.products:all", "admin.products:own"}, "all"),
        ({"admin.products:own"}, "own"),
        ({"admin.org:all"}, None),
    ],
)
def test_resolve_scope(permissions, expected):
    assert resolve_scope(frozenset(permissions), "admin.products") == expected


def test_token_round_trip():
    payload = decode_access_token(create_access_token({"sub": "admin"}))
    assert payload["sub"] == "admin"


def test_tampered_token_is_rejected():
    token = create_access_token({"sub": "admin"})
    header, payload, signature = token.split(".")
    assert decode_access_token(f"{header}.{payload}x.{signature}") is None
    assert decode_access_token("not-a-token") is None


def test_expired_token_is_rejected():
    assert decode_access_token(create_access_token({"sub": "admin"}, expires_delta=-10)) is None


def test_password_hashing():
    hashed = hash_password("s3cret-pass")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret-pass", None)


def test_service_error_body():
    error = ServiceError.not_found("Group not found", {"groupId": 9})
    assert error.http_status == 400
    assert error.to_body() == {
        "success": False,
        "message": "Group not found",
        "code": "NOT_FOUND_ERROR",
        "details": {"groupId": 9},
    }
    assert ServiceError.permission("no").code is ErrorCode.PERMISSION_ERROR
    assert ServiceError.permission("no").http_status == 403


def test_validate_pairs_collapses_repeated_options():
    target = validate_pairs(
        1,
        [
            PairItem(option_product_id=2),
            PairItem(option_product_id=3, is_required=True, units_count=100),
            PairItem(option_product_id=2, is_required=True, units_count=1),
        ],
    )
    assert target == {2: (True, 1), 3: (True, 100)}


@pytest.mark.parametrize(
    "pair, message",
    [
        (PairItem(option_product_id=1), "Self-pairing not allowed for option ids: 1"),
        (PairItem(option_product_id=2, is_required=True), "Invalid unitsCount for required option 2"),
        (PairItem(option_product_id=2, is_required=True, units_count=101), "Invalid unitsCount for required option 2"),
        (PairItem(option_product_id=2, units_count=3), "unitsCount must be null when not required for 2"),
    ],
)
def test_validate_pairs_rejects(pair, message):
    with pytest.raises(ServiceError) as info:
        validate_pairs(1, [pair])
    assert info.value.code is ErrorCode.VALIDATION_ERROR
    assert info.value.message == message


def test_formatter_uses_configured_layout():
    formatter = build_formatter("%(levelname)s|%(name)s|%(message)s|%(asctime)s", "%Y")
    record = logging.LogRecord("backoffice_api.test", logging.WARNING, __file__, 1, "slow query", None, None)
    record.created = 0
    line = formatter.format(record)
    assert line.startswith("WARNING|backoffice_api.test|slow query|19")


def test_formatter_falls_back_to_defaults():
    formatter = build_formatter(None, "")
    assert formatter._fmt == "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    assert formatter.datefmt == "%Y-%m-%d %H:%M:%S"


def test_setup_logging_writes_configured_format(tmp_path, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    logfile = tmp_path / "service.log"
    setup_logging("debug", str(logfile), "%(levelname)s %(message)s", None)
    try:
        logging.getLogger("backoffice_api.test").debug("hello")
        for handler in root.handlers:
            handler.flush()
        assert logfile.read_text(encoding="utf-8").splitlines() == ["DEBUG hello"]
    finally:
        for handler in root.handlers:
            handler.close()


def test_create_app_passes_log_settings(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "setup_logging", lambda *args: calls.append(args))
    monkeypatch.setattr(settings, "log_format", "%(name)s %(message)s")
    monkeypatch.setattr(settings, "log_date_format", "%H:%M")
    main.create_app()
    assert calls == [(settings.log_level, settings.log_file, "%(name)s %(message)s", "%H:%M")]
