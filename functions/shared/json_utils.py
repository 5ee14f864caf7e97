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


"""Helpers for JSON values that are persisted as serialized text."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

_CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def dumps_field(value: Any) -> str | None:
    """Serializes a value for a TEXT column. None stays None."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def parse_json_field(
    raw: Any,
    default: Any,
    field_name: str = "",
    expected: type | tuple[type, ...] | None = None,
) -> Any:
    """
    Deserializes a TEXT column holding JSON.

    Already-decoded values (lists, dicts) are used as they are. Empty
    values, malformed text and values that are not of the `expected` type
    yield `default` so one bad column never fails the whole response.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Error parsing %s: %s", field_name or "json field", e)
            return default
    else:
        value = raw
    if expected is not None and not isinstance(value, expected):
        logger.error(
            "Expected %s for %s, got %s",
            expected,
            field_name or "json field",
            type(value).__name__,
        )
        return default
    return value


def strip_code_fences(text: str) -> str:
    """Removes markdown ```json fences a model may wrap around its output."""
    return _CODE_FENCE_PATTERN.sub("", text).strip()


def to_iso(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def parse_iso(value: str) -> float:
    """
    Parses an ISO-8601 date or datetime into epoch seconds.

    Naive values are read as UTC. Raises ValueError on malformed input.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
