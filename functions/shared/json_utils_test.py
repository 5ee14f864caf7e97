# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import unittest

from shared import json_utils


class ParseJsonFieldTest(unittest.TestCase):

    def test_parses_serialized_list(self):
        self.assertEqual(
            json_utils.parse_json_field('["a.png", "b.png"]', []), ["a.png", "b.png"]
        )

    def test_malformed_text_degrades_to_default(self):
        self.assertEqual(json_utils.parse_json_field("[not json", []), [])
        self.assertIsNone(json_utils.parse_json_field("{oops", None))

    def test_empty_and_decoded_values(self):
        self.assertEqual(json_utils.parse_json_field(None, []), [])
        self.assertEqual(json_utils.parse_json_field("", []), [])
        self.assertEqual(json_utils.parse_json_field({"a": 1}, None), {"a": 1})

    def test_unexpected_type_degrades_to_default(self):
        self.assertEqual(
            json_utils.parse_json_field('{"x": 1}', [], "photos_urls", expected=list), []
        )
        self.assertEqual(
            json_utils.parse_json_field('"abc"', [], "photos_urls", expected=list), []
        )
        self.assertIsNone(
            json_utils.parse_json_field("[1, 2]", None, "plan_analysis", expected=dict)
        )
        self.assertEqual(
            json_utils.parse_json_field(["a"], [], "photos_urls", expected=list), ["a"]
        )

    def test_dumps_keeps_none(self):
        self.assertIsNone(json_utils.dumps_field(None))
        self.assertEqual(json_utils.dumps_field(["x"]), '["x"]')


class StripCodeFencesTest(unittest.TestCase):

    def test_removes_json_fences(self):
        text = '```json\n{"summary": "ok"}\n```'
        self.assertEqual(json_utils.strip_code_fences(text), '{"summary": "ok"}')

    def test_plain_text_untouched(self):
        self.assertEqual(json_utils.strip_code_fences(' {"a": 1} '), '{"a": 1}')


class IsoConversionTest(unittest.TestCase):

    def test_zulu_and_naive_are_utc(self):
        self.assertEqual(
            json_utils.parse_iso("2025-01-01T00:00:00Z"),
            json_utils.parse_iso("2025-01-01T00:00:00"),
        )

    def test_date_only(self):
        self.assertEqual(json_utils.parse_iso("1970-01-02"), 86400.0)

    def test_round_trip_to_iso(self):
        self.assertEqual(json_utils.to_iso(0), "1970-01-01T00:00:00+00:00")
        self.assertIsNone(json_utils.to_iso(None))

    def test_malformed_raises(self):
        with self.assertRaises(ValueError):
            json_utils.parse_iso("yesterday")


if __name__ == "__main__":
    unittest.main()
