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


import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


class GeminiInvalidResponseException(Exception):
    pass


class GeminiApiError(Exception):
    """Raised when the Gemini API answers with a non-2xx status."""

    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Google API Error ({status_code}): {body}")


def call_predict_json_with_image(
    prompt: str,
    image_bytes: bytes,
    api_key: str,
    mime_type: str = DEFAULT_IMAGE_MIME_TYPE,
    model: str = DEFAULT_MODEL,
) -> str:
    """
    Calls Gemini once with a prompt and an inline image, asking for JSON output.

    The SDK base64-encodes the inline bytes on the wire. There is no retry:
    any API failure surfaces as GeminiApiError with the upstream body.

    Returns:
        str: The raw text of the first candidate.
    """
    client = genai.Client(api_key=api_key)

    truncated_query = (prompt[:200] + "...") if len(prompt) > 200 else prompt
    logger.info(
        "Calling Gemini model %s with %s (%d bytes), prompt: '%s'",
        model,
        mime_type,
        len(image_bytes),
        truncated_query,
    )
    try:
        response = client.models.generate_content(
            model=model,
            contents=[
                prompt,
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
            ),
        )
    except genai_errors.APIError as e:
        logger.error("Google API Error Detail: %s", e)
        raise GeminiApiError(e.code, str(e.message or e)) from e

    if not response.text:
        raise GeminiInvalidResponseException("No content returned from Gemini")
    return response.text
