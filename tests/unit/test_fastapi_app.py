"""
Request validation in the FastAPI example application.
"""

from __future__ import annotations

import importlib.util
import unittest

EXAMPLE_STACK = all(importlib.util.find_spec(name) is not None for name in ("fastapi", "uvicorn"))


@unittest.skipUnless(EXAMPLE_STACK, "fastapi and uvicorn are required")
class KeyValueRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        from fastapi import HTTPException

        from ec_example import fastapi_app

        self.app_module = fastapi_app
        self.http_exception = HTTPException

    def test_parse_ttl(self) -> None:
        parse = self.app_module._parse_ttl
        self.assertIsNone(parse(None))
        self.assertEqual(parse(30), 30.0)
        self.assertEqual(parse("1.5"), 1.5)

    def test_invalid_ttl_is_bad_request(self) -> None:
        for raw in ("soon", [1], {"s": 1}, True, "nan", "inf"):
            with self.subTest(raw=raw):
                with self.assertRaises(self.http_exception) as ctx:
                    self.app_module.kv_set("session", {"value": 1, "ttl_seconds": raw})
                self.assertEqual(ctx.exception.status_code, 400)


if __name__ == "__main__":
    unittest.main()
