import json
import logging
import unittest

from hapbench.util.json import json_dumps, json_loads
from hapbench.util.logging import log_structured_event, new_job_id
from hapbench.util.timing import timed


class _CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def _capture_logger(name):
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = _CaptureHandler()
    logger.handlers = [handler]
    return logger, handler


class TestStructuredLogging(unittest.TestCase):
    def test_new_job_id_prefix(self):
        job_id = new_job_id("bench")
        self.assertTrue(job_id.startswith("bench_"))
        self.assertGreater(len(job_id), len("bench_"))
        self.assertNotEqual(new_job_id(), new_job_id())

    def test_log_structured_event_emits_json_message(self):
        logger, handler = _capture_logger("hapbench.tests.structured_logging")

        payload = log_structured_event(
            logger,
            logging.INFO,
            "fixture_written",
            artifact="tsv",
            bytes=128,
            skipped=None,
        )
        self.assertEqual(payload["event"], "fixture_written")
        self.assertNotIn("skipped", payload)
        self.assertEqual(len(handler.messages), 1)

        decoded = json.loads(handler.messages[0])
        self.assertEqual(decoded["artifact"], "tsv")
        self.assertEqual(decoded["bytes"], 128)

    def test_disabled_level_emits_nothing(self):
        logger, handler = _capture_logger("hapbench.tests.structured_logging.quiet")
        log_structured_event(logger, logging.DEBUG, "benchmark_invocation", elapsed_seconds=0.1)
        self.assertEqual(handler.messages, [])

    def test_large_strings_are_truncated(self):
        logger, handler = _capture_logger("hapbench.tests.structured_logging.truncation")
        payload = log_structured_event(
            logger, logging.INFO, "strategy_unsupported", error="x" * 3000, input="tsv"
        )
        self.assertTrue(payload["error"].endswith("...<truncated>"))
        self.assertLess(len(payload["error"]), 3000)
        self.assertEqual(payload["input"], "tsv")
        self.assertEqual(json.loads(handler.messages[0])["error"], payload["error"])


def test_json_helpers_round_trip():
    text = json_dumps({"a": [1, 2], "b": "c"}, indent=True)
    assert json_loads(text) == {"a": [1, 2], "b": "c"}
    assert json_loads(text.encode("utf-8")) == {"a": [1, 2], "b": "c"}


def test_timed_records_elapsed_seconds():
    ticks = iter([10.0, 12.5])
    with timed(clock=lambda: next(ticks)) as timing:
        pass
    assert timing["seconds"] == 2.5
