import unittest

import requests

from lrt_traffic import backend_client
from lrt_traffic.backend_client import EmptySuccess, Failure, Success, normalize_outcome
from lrt_traffic.errors import FetchFailed


class DummyResp:
    def __init__(self, payload=None, status_code=200, content_type="application/json", text=""):
        self._payload = payload
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestNormalizeOutcome(unittest.TestCase):
    def test_numeric_code_success(self):
        outcome = normalize_outcome({"code": 0, "data": {"rows": [], "total": 0}})
        self.assertIsInstance(outcome, Success)
        self.assertEqual(outcome.data, {"rows": [], "total": 0})

    def test_string_sts_success(self):
        outcome = normalize_outcome({"sts": "S", "data": {"rows": [{"a": 1}], "total": 1}})
        self.assertIsInstance(outcome, Success)

    def test_empty_result_sentinel_in_msg(self):
        outcome = normalize_outcome({"sts": "E", "msg": "Success list, data not found"})
        self.assertIsInstance(outcome, EmptySuccess)

    def test_empty_result_sentinel_in_message(self):
        outcome = normalize_outcome({"code": 1, "message": "Success"})
        self.assertIsInstance(outcome, EmptySuccess)

    def test_success_without_data_and_no_sentinel_is_failure(self):
        outcome = normalize_outcome({"code": 0})
        self.assertIsInstance(outcome, Failure)
        self.assertEqual(outcome.message, "API Error: code 0")

    def test_token_message_marks_auth_expired(self):
        outcome = normalize_outcome({"sts": "E", "msg": "Token expired"})
        self.assertIsInstance(outcome, Failure)
        self.assertTrue(outcome.auth_expired)
        self.assertEqual(outcome.message, "Token expired")

    def test_other_error_is_not_auth_expired(self):
        outcome = normalize_outcome({"sts": "E", "msg": "Database timeout"})
        self.assertIsInstance(outcome, Failure)
        self.assertFalse(outcome.auth_expired)

    def test_http_401_is_auth_expired(self):
        outcome = normalize_outcome({"msg": "nope"}, status_code=401)
        self.assertIsInstance(outcome, Failure)
        self.assertTrue(outcome.auth_expired)
        self.assertEqual(outcome.status_code, 401)

    def test_http_500_is_plain_failure(self):
        outcome = normalize_outcome({}, status_code=500)
        self.assertIsInstance(outcome, Failure)
        self.assertFalse(outcome.auth_expired)

    def test_non_dict_body_is_failure(self):
        self.assertIsInstance(normalize_outcome(["rows"]), Failure)

    def test_boolean_code_is_not_success(self):
        self.assertFalse(backend_client.is_success({"code": False}))


class TestPostJson(unittest.TestCase):
    def setUp(self):
        self._orig_session = backend_client.session

    def tearDown(self):
        backend_client.session = self._orig_session

    def test_sends_bearer_token_and_returns_body(self):
        fake = RecordingSession(DummyResp({"sts": "S", "data": {}}))
        backend_client.session = fake

        resp = backend_client.post_json("/transaction/list", {"a": 1}, token="tok")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.body, {"sts": "S", "data": {}})
        self.assertEqual(fake.calls[0]["headers"]["Authorization"], "Bearer tok")
        self.assertTrue(fake.calls[0]["url"].endswith("/transaction/list"))

    def test_non_json_content_type_raises(self):
        backend_client.session = RecordingSession(DummyResp(None, status_code=502, content_type="text/html"))
        with self.assertRaises(FetchFailed) as ctx:
            backend_client.post_json("/x", {})
        self.assertFalse(ctx.exception.auth_expired)
        self.assertEqual(ctx.exception.status_code, 502)

    def test_non_json_401_is_auth_expired(self):
        backend_client.session = RecordingSession(DummyResp(None, status_code=401, content_type="text/plain"))
        with self.assertRaises(FetchFailed) as ctx:
            backend_client.post_json("/x", {})
        self.assertTrue(ctx.exception.auth_expired)

    def test_malformed_json_raises(self):
        backend_client.session = RecordingSession(DummyResp(ValueError("bad json")))
        with self.assertRaises(FetchFailed):
            backend_client.post_json("/x", {})

    def test_transport_error_raises(self):
        backend_client.session = RecordingSession(requests.exceptions.ConnectionError("refused"))
        with self.assertRaises(FetchFailed) as ctx:
            backend_client.post_json("/x", {})
        self.assertFalse(ctx.exception.auth_expired)


if __name__ == "__main__":
    unittest.main()
