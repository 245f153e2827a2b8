import unittest

import requests

from multdrill.report import (
    ReportClient,
    ReportService,
    ReportServiceError,
    ReportState,
    build_prompt,
    format_for_prompt,
)
from storage.store import TelemetryStore


class FakeResponse:
    def __init__(self, status_code=200, payload=None) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeHttp:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _reply(text):
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _client(http, **kwargs) -> ReportClient:
    return ReportClient("https://example.test/generate", api_key="k", http=http, sleep=lambda _s: None, **kwargs)


ROWS = [
    {"factor_a": 7, "factor_b": 8, "is_correct": True, "user_input": 56},
    {"factor_a": 6, "factor_b": 7, "is_correct": False, "user_input": 40},
    {"factor_a": 9, "factor_b": 9, "is_correct": False, "user_input": None},
]
STATS = {"total": 3, "correct": 1, "avgTime": 1500, "accuracy": 33}


class TranscriptTests(unittest.TestCase):
    def test_format_for_prompt(self) -> None:
        text = format_for_prompt(ROWS, STATS)
        lines = text.splitlines()
        self.assertEqual(lines[0], "Historial: 7x8:Si, 6x7:No, 9x9:No")
        self.assertEqual(lines[1], "ESTADÍSTICAS: Total=3, Correctas=1, Precisión=33%, TiempoPromedio=1500ms")
        self.assertEqual(lines[2], "ERRORES: 6x7=42(respondió:40), 9x9=81(respondió:sin respuesta)")

    def test_empty_history(self) -> None:
        self.assertEqual(format_for_prompt([], STATS), "Sin datos de sesión.")

    def test_prompt_embeds_data(self) -> None:
        prompt = build_prompt("DATA")
        self.assertIn("Datos: DATA", prompt)
        self.assertIn("Máximo 150 palabras", prompt)
        self.assertNotIn("resumen_general", prompt)
        self.assertIn("resumen_general", build_prompt("DATA", structured=True))


class ReportClientTests(unittest.TestCase):
    def test_payload_and_reply(self) -> None:
        http = FakeHttp(_reply("Muy bien"))
        self.assertEqual(_client(http, temperature=0.5, max_output_tokens=120).generate("hola"), "Muy bien")
        url, kwargs = http.calls[0]
        self.assertEqual(url, "https://example.test/generate")
        self.assertEqual(kwargs["params"], {"key": "k"})
        self.assertEqual(kwargs["json"]["contents"][0]["parts"][0]["text"], "hola")
        self.assertEqual(kwargs["json"]["generationConfig"], {"temperature": 0.5, "maxOutputTokens": 120})

    def test_retries_rate_limit_and_transport_errors(self) -> None:
        http = FakeHttp(FakeResponse(429), requests.ConnectionError("down"), _reply("ok"))
        self.assertEqual(_client(http, retries=2).generate("p"), "ok")
        self.assertEqual(len(http.calls), 3)

    def test_gives_up_after_retries(self) -> None:
        http = FakeHttp(FakeResponse(503), FakeResponse(503))
        with self.assertRaises(ReportServiceError):
            _client(http, retries=1).generate("p")

    def test_client_error_not_retried(self) -> None:
        http = FakeHttp(FakeResponse(400), _reply("never"))
        with self.assertRaises(ReportServiceError):
            _client(http).generate("p")
        self.assertEqual(len(http.calls), 1)

    def test_empty_candidates(self) -> None:
        with self.assertRaises(ReportServiceError):
            _client(FakeHttp(FakeResponse(200, {"candidates": []}))).generate("p")

    def test_missing_key(self) -> None:
        client = ReportClient("https://example.test", api_key=None, api_key_env="MULTDRILL_TEST_NO_SUCH_KEY", http=FakeHttp())
        with self.assertRaises(ReportServiceError):
            client.generate("p")

    def test_extract_json(self) -> None:
        self.assertEqual(ReportClient._extract_json('Claro: {"a": 1} listo'), {"a": 1})
        self.assertIsNone(ReportClient._extract_json("sin json"))
        self.assertIsNone(ReportClient._extract_json("{roto"))


class ReportServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = TelemetryStore()
        self.store.start_session("ana")
        self.store.record_attempt(6, 7, 40, False, 2000, "free")
        self.states = []

    def _service(self, http, structured=False) -> ReportService:
        return ReportService(_client(http, retries=0), structured=structured, on_state=self.states.append)

    def test_success_prose(self) -> None:
        service = self._service(FakeHttp(_reply("Buen trabajo.")))
        self.assertIs(service.analyze(self.store), ReportState.SUCCESS)
        self.assertEqual(service.text, "Buen trabajo.")
        self.assertIsNone(service.report)
        self.assertEqual(self.states, [ReportState.LOADING, ReportState.SUCCESS])

    def test_structured_report(self) -> None:
        body = (
            '```json\n{"resumen_general": "a", "patron_errores": "b", '
            '"plan_accion": "c", "sugerencia_entrenamiento": "d"}\n```'
        )
        service = self._service(FakeHttp(_reply(body)), structured=True)
        service.analyze(self.store)
        self.assertEqual(service.report.patron_errores, "b")

    def test_structured_missing_fields_keeps_prose(self) -> None:
        service = self._service(FakeHttp(_reply('{"resumen_general": "a"}')), structured=True)
        self.assertIs(service.analyze(self.store), ReportState.SUCCESS)
        self.assertIsNone(service.report)
        self.assertEqual(service.text, '{"resumen_general": "a"}')

    def test_error_then_retry(self) -> None:
        http = FakeHttp(FakeResponse(500), _reply("ok"))
        service = self._service(http)
        self.assertIs(service.analyze(self.store), ReportState.ERROR)
        self.assertIn("500", service.error)
        self.assertIs(service.analyze(self.store), ReportState.SUCCESS)
        self.assertIsNone(service.error)
        service.reset()
        self.assertIs(service.state, ReportState.IDLE)
        self.assertIsNone(service.text)


if __name__ == "__main__":
    unittest.main()
