"""
tests/test_adapters.py — Remote-call adapters (REST face API, Gemini).

Test classes:
    TestHttpClassifier   — requests errors → ErrorKind
    TestFaceApiClient    — FaceApiClient through a real TransThrottle, mocked session
    TestGeminiAdapter    — google-genai errors → ErrorKind, generate_text
"""

import sys
import os
import json
import unittest
from unittest.mock import patch, MagicMock
from datetime import date

import requests
from google.genai import errors as genai_errors

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from adapters import gemini
from adapters.http_api import FaceApiClient, classify_http_error
from throttle.errors import RemoteCallError
from throttle.service_types import ErrorKind, ServiceType
from throttle.trans_throttle import TransThrottle

TOO_MANY_FACES = {
    "error": {
        "code": "BadArgument",
        "message": "'faceIds' exceeds maximum item count of '10'.",
    }
}


def make_response(status, body=None):
    response = requests.Response()
    response.status_code = status
    response.url = "https://face.example.com/face/v1.0/detect"
    response._content = json.dumps(body).encode() if body is not None else b""
    return response


def http_error(status, body=None):
    response = make_response(status, body)
    return requests.HTTPError(f"{status} error", response=response)


def make_throttle(service_type, sleeps, month_total=0):
    store = MagicMock()
    store.sum_usage.return_value = month_total
    return TransThrottle(
        service_type,
        store=store,
        max_per_minute=100,
        max_per_month=1000,
        max_retries=3,
        cooldown_seconds=30,
        sleep=lambda seconds, cancel=None: sleeps.append(seconds),
        today=lambda: date(2026, 3, 15),
    )


class TestHttpClassifier(unittest.TestCase):

    def test_429_is_rate_limited(self):
        self.assertIs(classify_http_error(http_error(429)), ErrorKind.RATE_LIMITED)

    def test_item_count_400_is_structural(self):
        self.assertIs(classify_http_error(http_error(400, TOO_MANY_FACES)),
                      ErrorKind.STRUCTURAL_INVALID)

    def test_other_400_is_other(self):
        body = {"error": {"code": "InvalidImage", "message": "Decoding error."}}
        self.assertIs(classify_http_error(http_error(400, body)), ErrorKind.OTHER)

    def test_server_error_and_non_http(self):
        self.assertIs(classify_http_error(http_error(500)), ErrorKind.OTHER)
        self.assertIs(classify_http_error(requests.ConnectionError()), ErrorKind.OTHER)
        self.assertIs(classify_http_error(ValueError()), ErrorKind.OTHER)


class TestFaceApiClient(unittest.TestCase):

    def setUp(self):
        self.sleeps = []
        self.throttle = make_throttle(ServiceType.AZURE_FACE, self.sleeps)
        self.session = MagicMock()
        self.session.headers = {}
        self.client = FaceApiClient(
            self.throttle,
            endpoint="https://face.example.com/",
            api_key="secret",
            session=self.session,
        )

    def test_subscription_key_header(self):
        self.assertEqual(self.session.headers["Ocp-Apim-Subscription-Key"], "secret")

    def test_detect_retries_after_429(self):
        faces = [{"faceId": "f1"}]
        self.session.post.side_effect = [make_response(429), make_response(200, faces)]

        self.assertEqual(self.client.detect_faces(b"jpeg"), faces)
        self.assertEqual(self.session.post.call_count, 2)
        self.assertEqual(self.sleeps, [30])
        self.assertEqual(self.throttle.total_transactions, 1)

        url = self.session.post.call_args[0][0]
        self.assertEqual(url, "https://face.example.com/face/v1.0/detect")

    def test_identify_too_many_faces_returns_none(self):
        self.session.post.return_value = make_response(400, TOO_MANY_FACES)

        ids = [f"f{i}" for i in range(11)]
        self.assertIsNone(self.client.identify_faces(ids, "people"))
        self.assertEqual(self.session.post.call_count, 1)
        self.assertEqual(self.sleeps, [])

        sent = self.session.post.call_args[1]["json"]
        self.assertEqual(sent["personGroupId"], "people")

    def test_unauthorised_raises_http_error(self):
        self.session.post.return_value = make_response(401, {"error": {"code": "401"}})
        with self.assertRaises(requests.HTTPError):
            self.client.detect_faces(b"jpeg")
        self.assertEqual(self.session.post.call_count, 1)

    def test_rate_limit_exhausted_raises_remote_error(self):
        self.session.post.return_value = make_response(429)
        with self.assertRaises(RemoteCallError) as ctx:
            self.client.detect_faces(b"jpeg")
        self.assertIs(ctx.exception.kind, ErrorKind.RATE_LIMITED)
        self.assertIsInstance(ctx.exception.cause, requests.HTTPError)
        self.assertEqual(self.session.post.call_count, 3)

    def test_disabled_skips_call(self):
        throttle = make_throttle(ServiceType.AZURE_FACE, self.sleeps, month_total=1000)
        client = FaceApiClient(throttle, endpoint="https://face.example.com",
                               api_key="k", session=self.session)
        self.assertIsNone(client.detect_faces(b"jpeg"))
        self.session.post.assert_not_called()

    def test_throttle_with_http_classifier_retries_429(self):
        """Client errors already wrapped by _post keep their kind under classify_http_error."""
        sleeps = []
        store = MagicMock()
        store.sum_usage.return_value = 0
        throttle = TransThrottle(
            ServiceType.AZURE_FACE,
            store=store,
            classify=classify_http_error,
            max_per_minute=100,
            max_per_month=1000,
            max_retries=3,
            cooldown_seconds=30,
            sleep=lambda seconds, cancel=None: sleeps.append(seconds),
            today=lambda: date(2026, 3, 15),
        )
        client = FaceApiClient(throttle, endpoint="https://face.example.com",
                               api_key="k", session=self.session)
        self.session.post.side_effect = [make_response(429), make_response(200, [])]

        self.assertEqual(client.detect_faces(b"jpeg"), [])
        self.assertEqual(sleeps, [30])
        self.assertEqual(self.session.post.call_count, 2)

    def test_http_classifier_passes_remote_error_kind(self):
        for kind in ErrorKind:
            self.assertIs(classify_http_error(RemoteCallError(kind, "x")), kind)

    def test_add_person_face_empty_body(self):
        self.session.post.return_value = make_response(200)
        self.assertIsNone(self.client.add_person_face("people", "p1", b"jpeg"))
        self.assertEqual(self.throttle.total_transactions, 1)


def genai_error(code, message):
    return genai_errors.ClientError(code, {"error": {"code": code, "message": message}})


class TestGeminiAdapter(unittest.TestCase):

    def setUp(self):
        self.sleeps = []
        self.throttle = make_throttle(ServiceType.GEMINI, self.sleeps)
        gemini._client = None

    def tearDown(self):
        gemini._client = None

    def test_classify_gemini_errors(self):
        self.assertIs(gemini.classify_gemini_error(genai_error(429, "Resource exhausted")),
                      ErrorKind.RATE_LIMITED)
        self.assertIs(
            gemini.classify_gemini_error(genai_error(
                400, "The input token count exceeds the maximum number of tokens allowed")),
            ErrorKind.STRUCTURAL_INVALID,
        )
        self.assertIs(gemini.classify_gemini_error(genai_error(403, "Permission denied")),
                      ErrorKind.OTHER)
        self.assertIs(gemini.classify_gemini_error(ValueError("bad")), ErrorKind.OTHER)

    @patch("adapters.gemini._get_client")
    def test_generate_text_retries_rate_limit(self, mock_get_client):
        client = MagicMock()
        response = MagicMock()
        response.text = "  Hello there  "
        client.models.generate_content.side_effect = [genai_error(429, "Resource exhausted"), response]
        mock_get_client.return_value = client

        text = gemini.generate_text(self.throttle, "Say hello", model="gemini-2.5-flash")

        self.assertEqual(text, "Hello there")
        self.assertEqual(self.sleeps, [30])
        client.models.generate_content.assert_called_with(model="gemini-2.5-flash", contents="Say hello")

    @patch("adapters.gemini._get_client")
    def test_throttle_with_gemini_classifier_retries_rate_limit(self, mock_get_client):
        """Errors wrapped by _generate keep their kind under classify_gemini_error."""
        sleeps = []
        store = MagicMock()
        store.sum_usage.return_value = 0
        throttle = TransThrottle(
            ServiceType.GEMINI,
            store=store,
            classify=gemini.classify_gemini_error,
            max_per_minute=100,
            max_per_month=1000,
            max_retries=3,
            cooldown_seconds=30,
            sleep=lambda seconds, cancel=None: sleeps.append(seconds),
            today=lambda: date(2026, 3, 15),
        )
        client = MagicMock()
        response = MagicMock()
        response.text = "ok"
        client.models.generate_content.side_effect = [genai_error(429, "Resource exhausted"), response]
        mock_get_client.return_value = client

        self.assertEqual(gemini.generate_text(throttle, "hi"), "ok")
        self.assertEqual(sleeps, [30])
        self.assertIs(gemini.classify_gemini_error(RemoteCallError(ErrorKind.STRUCTURAL_INVALID)),
                      ErrorKind.STRUCTURAL_INVALID)

    @patch("adapters.gemini._get_client")
    def test_generate_text_prompt_too_large(self, mock_get_client):
        client = MagicMock()
        client.models.generate_content.side_effect = genai_error(
            400, "The input token count exceeds the maximum number of tokens allowed")
        mock_get_client.return_value = client

        self.assertEqual(gemini.generate_text(self.throttle, "x" * 10), "")
        self.assertEqual(client.models.generate_content.call_count, 1)

    @patch("adapters.gemini._get_client")
    def test_generate_text_permission_error_raised(self, mock_get_client):
        client = MagicMock()
        client.models.generate_content.side_effect = genai_error(403, "Permission denied")
        mock_get_client.return_value = client

        with self.assertRaises(genai_errors.ClientError):
            gemini.generate_text(self.throttle, "hi")

    @patch("adapters.gemini._get_client")
    def test_generate_text_disabled(self, mock_get_client):
        throttle = make_throttle(ServiceType.GEMINI, self.sleeps, month_total=5000)
        self.assertEqual(gemini.generate_text(throttle, "hi"), "")
        mock_get_client.assert_not_called()

    @patch("adapters.gemini.config")
    def test_no_api_key_returns_empty(self, mock_config):
        mock_config.GEMINI_API_KEY = None
        mock_config.GEMINI_MODEL = "gemini-2.5-flash-lite"
        self.assertEqual(gemini.generate_text(self.throttle, "hi"), "")
        self.assertEqual(self.throttle.total_transactions, 0)

    @patch("adapters.gemini.genai.Client")
    @patch("adapters.gemini.config")
    def test_client_created_once(self, mock_config, mock_client_cls):
        mock_config.GEMINI_API_KEY = "key"
        first = gemini._get_client()
        second = gemini._get_client()
        self.assertIs(first, second)
        mock_client_cls.assert_called_once_with(api_key="key")


if __name__ == "__main__":
    unittest.main(verbosity=2)
