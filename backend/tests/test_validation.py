# Overview: Pytest coverage for request payload validation.

import pytest

from poscloud.validation import (
    APPROVE_SCHEMA,
    AUDIT_QUERY_SCHEMA,
    META_MAX_KEYS,
    REQUEST_SCHEMA,
    VERIFY_SCHEMA,
    ValidationError,
    validate,
)


def _issues(schema, payload):
    with pytest.raises(ValidationError) as exc_info:
        validate(schema, payload)
    return {tuple(issue["path"]): issue["message"] for issue in exc_info.value.issues}


class TestRequestSchema:
    def test_valid_payload(self):
        data = validate(REQUEST_SCHEMA, {
            "companyId": 1,
            "actionCode": "VOID_SALE",
            "requestedById": 7,
            "resourceType": "Sale",
            "resourceId": "42",
            "meta": {"amount": 1500},
            "unexpected": "dropped",
        })
        assert data["actionCode"] == "VOID_SALE"
        assert data["meta"] == {"amount": 1500}
        assert "unexpected" not in data

    def test_optional_fields_left_out(self):
        data = validate(REQUEST_SCHEMA, {"companyId": 1, "actionCode": "VOID", "requestedById": 7})
        assert "resourceType" not in data
        assert "terminalId" not in data

    def test_every_failing_field_reported(self):
        issues = _issues(REQUEST_SCHEMA, {"companyId": "abc", "actionCode": "V"})
        assert issues[("companyId",)] == "Expected integer"
        assert issues[("actionCode",)] == "String must contain at least 3 character(s)"
        assert issues[("requestedById",)] == "Required"

    def test_non_positive_ids_rejected(self):
        issues = _issues(REQUEST_SCHEMA, {"companyId": 0, "actionCode": "VOID", "requestedById": -1})
        assert issues[("companyId",)] == "Number must be greater than 0"
        assert ("requestedById",) in issues

    def test_booleans_are_not_integers(self):
        issues = _issues(REQUEST_SCHEMA, {"companyId": True, "actionCode": "VOID", "requestedById": 1})
        assert issues[("companyId",)] == "Expected integer"

    def test_meta_must_be_object(self):
        issues = _issues(REQUEST_SCHEMA, {
            "companyId": 1, "actionCode": "VOID", "requestedById": 1, "meta": ["a"],
        })
        assert issues[("meta",)] == "Expected object"

    def test_meta_key_limit(self):
        meta = {f"k{i}": i for i in range(META_MAX_KEYS + 1)}
        issues = _issues(REQUEST_SCHEMA, {
            "companyId": 1, "actionCode": "VOID", "requestedById": 1, "meta": meta,
        })
        assert ("meta",) in issues

    def test_meta_depth_limit(self):
        meta = {"a": {"b": {"c": {"d": {"e": 1}}}}}
        issues = _issues(REQUEST_SCHEMA, {
            "companyId": 1, "actionCode": "VOID", "requestedById": 1, "meta": meta,
        })
        assert ("meta",) in issues

    def test_body_must_be_object(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(REQUEST_SCHEMA, ["not", "an", "object"])
        assert exc_info.value.issues == [{"path": [], "message": "Expected object"}]


class TestApproveSchema:
    @pytest.mark.parametrize("ttl", [29, 601])
    def test_ttl_out_of_bounds(self, ttl):
        issues = _issues(APPROVE_SCHEMA, {"requestId": 1, "expiresInSeconds": ttl})
        assert ("expiresInSeconds",) in issues

    @pytest.mark.parametrize("ttl", [30, 180, 600])
    def test_ttl_bounds_inclusive(self, ttl):
        assert validate(APPROVE_SCHEMA, {"requestId": 1, "expiresInSeconds": ttl})["expiresInSeconds"] == ttl


class TestVerifySchema:
    def test_short_token_rejected(self):
        issues = _issues(VERIFY_SCHEMA, {
            "companyId": 1, "token": "abc", "actionCode": "VOID", "usedById": 1,
        })
        assert issues[("token",)] == "String must contain at least 4 character(s)"


class TestQuerySchema:
    def test_query_strings_coerced(self):
        data = validate(AUDIT_QUERY_SCHEMA, {"companyId": "3", "limit": "25"})
        assert data == {"companyId": 3, "limit": 25}

    def test_empty_query_values_ignored(self):
        assert validate(AUDIT_QUERY_SCHEMA, {"limit": ""}) == {}

    @pytest.mark.parametrize("raw", ["²", "５", "-٣"])
    def test_non_ascii_digits_rejected(self, raw):
        issues = _issues(AUDIT_QUERY_SCHEMA, {"limit": raw})
        assert issues[("limit",)] == "Expected integer"

    def test_limit_capped(self):
        issues = _issues(AUDIT_QUERY_SCHEMA, {"limit": "500"})
        assert issues[("limit",)] == "Number must be less than or equal to 200"

    def test_error_body_shape(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(AUDIT_QUERY_SCHEMA, {"limit": "many"})
        body = exc_info.value.to_dict()
        assert body["message"] == "Validation error"
        assert body["issues"] == [{"path": ["limit"], "message": "Expected integer"}]
