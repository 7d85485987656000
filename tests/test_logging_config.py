import json
import logging
import unittest

from config.logging_config import JsonFormatter, RequestIdFilter, request_id_var


def _record(msg="cot_snapshot_built markets=%s", args=(3,)):
    return logging.LogRecord("services.cot.snapshot_service", logging.INFO, __file__, 1, msg, args, None)


class LoggingConfigTests(unittest.TestCase):
    def test_filter_stamps_current_request_id(self):
        token = request_id_var.set("rid-1")
        try:
            record = _record()
            self.assertTrue(RequestIdFilter().filter(record))
        finally:
            request_id_var.reset(token)
        self.assertEqual(record.request_id, "rid-1")

    def test_filter_outside_request_uses_dash(self):
        record = _record()
        RequestIdFilter().filter(record)
        self.assertEqual(record.request_id, "-")

    def test_json_formatter(self):
        record = _record()
        RequestIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["message"], "cot_snapshot_built markets=3")
        self.assertEqual(payload["logger"], "services.cot.snapshot_service")
        self.assertEqual(payload["request_id"], "-")
        self.assertTrue(payload["ts"].endswith("Z"))


if __name__ == "__main__":
    unittest.main()
