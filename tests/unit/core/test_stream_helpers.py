# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from unittest import TestCase

from chatcompare.utils.stream_helpers import SSE_DONE_LINE, format_sse, sse_data


class StreamHelpersTest(TestCase):
    def test_format_sse_frames_one_record(self):
        line = format_sse({"provider": "openai", "type": "content", "content": "hé"})
        self.assertTrue(line.startswith("data: {"))
        self.assertTrue(line.endswith("}\n\n"))
        self.assertIn("hé", line)

    def test_sse_data_extracts_payload(self):
        self.assertEqual(sse_data('data: {"a": 1}'), '{"a": 1}')
        self.assertEqual(sse_data('data:{"a": 1}'), '{"a": 1}')
        self.assertEqual(sse_data("data: [DONE]\n"), "[DONE]")

    def test_sse_data_ignores_other_fields(self):
        self.assertIsNone(sse_data(""))
        self.assertIsNone(sse_data(": keepalive"))
        self.assertIsNone(sse_data("event: message"))

    def test_done_line(self):
        self.assertEqual(SSE_DONE_LINE, "data: [DONE]\n\n")
