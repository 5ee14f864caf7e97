"""
Floor-plan analysis: download the stored plan, ask Gemini for a fire-risk
assessment and merge the result into the house's `plan_analysis` column.

Preventive and operational analyses live side by side in one document:
the operational result is kept under `operational_report`, the preventive
result forms the top level.

There is no locking around the read-merge-write at the end. Two concurrent
analyses of the same house may both read the same prior document and the
last write wins.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from firesafe.config import Settings
from firesafe.db import DbClient
from firesafe.errors import ConfigurationError, NotFoundError, UpstreamError
from firesafe.storage import StorageClient, StorageError, resolve_storage_path
from models import gemini, prompts
from shared.json_utils import dumps_field, parse_json_field, strip_code_fences
from shared.types import AnalysisMode, DownloadSource

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
OPERATIONAL_REPORT_KEY = "operational_report"
PARSE_ERROR_SUMMARY = "Erreur de formatage JSON."


@dataclass(frozen=True)
class PlanDownload:
    data: bytes
    source: DownloadSource
    content_type: str


def guess_content_type(url: str) -> str:
    path = urlparse(url).path
    content_type, _ = mimetypes.guess_type(path)
    return content_type or gemini.DEFAULT_IMAGE_MIME_TYPE


def _download_from_storage(
    plan_url: str, storage: StorageClient, folder: str
) -> Optional[bytes]:
    path = resolve_storage_path(plan_url, folder)
    if not path:
        logger.info("Plan URL has no '%s/' segment, skipping storage download", folder)
        return None
    try:
        return storage.get_bytes(path)
    except StorageError as e:
        logger.warning("Storage download of %s failed: %s", path, e)
        return None


def _download_from_url(plan_url: str) -> Optional[requests.Response]:
    try:
        response = requests.get(plan_url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Public download of %s failed: %s", plan_url, e)
        return None
    return response


def download_plan(plan_url: str, storage: StorageClient, folder: str) -> PlanDownload:
    """
    Fetches the plan bytes, first from object storage, then from the public URL.

    Returns:
        PlanDownload: the bytes tagged with the path that produced them.

    Raises:
        UpstreamError: if neither path returned the file.
    """
    content_type = guess_content_type(plan_url)

    data = _download_from_storage(plan_url, storage, folder)
    if data is not None:
        logger.info("Downloaded plan from storage (%d bytes)", len(data))
        return PlanDownload(data, DownloadSource.STORAGE, content_type)

    response = _download_from_url(plan_url)
    if response is not None:
        header_type = (response.headers.get("Content-Type") or "").split(";")[0].strip()
        if header_type.startswith("image/") or header_type == "application/pdf":
            content_type = header_type
        logger.info("Downloaded plan from public URL (%d bytes)", len(response.content))
        return PlanDownload(response.content, DownloadSource.PUBLIC_URL, content_type)

    raise UpstreamError(f"Unable to download plan from {plan_url}")


def build_prompt(
    mode: AnalysisMode,
    context_data: Any = None,
    prompt_instruction: Optional[str] = None,
) -> str:
    if mode is AnalysisMode.OPERATIONAL:
        return prompts.make_operational_prompt(context_data, prompt_instruction)
    return prompts.make_preventive_prompt()


def parse_analysis(text: str) -> dict:
    """
    Parses the model output. Unparseable output becomes a stub carrying
    the raw text so the call still succeeds.
    """
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        logger.error("JSON parse error: %s. Raw text: %s", e, text)
        return {"summary": PARSE_ERROR_SUMMARY, "operational_summary": text}
    if not isinstance(parsed, dict):
        logger.error("Model returned %s instead of an object", type(parsed).__name__)
        return {"summary": PARSE_ERROR_SUMMARY, "operational_summary": text}
    return parsed


def merge_analysis(current: Optional[dict], new: dict, mode: AnalysisMode) -> dict:
    """
    Combines a fresh analysis with the one already stored on the house.

    Operational results are nested under `operational_report` next to the
    existing document. Preventive results replace the top level but keep
    any previous operational report.
    """
    if mode is AnalysisMode.OPERATIONAL:
        if current is None:
            return {OPERATIONAL_REPORT_KEY: new}
        return {**current, OPERATIONAL_REPORT_KEY: new}

    merged = {k: v for k, v in new.items() if k != OPERATIONAL_REPORT_KEY}
    if current is not None and current.get(OPERATIONAL_REPORT_KEY) is not None:
        merged[OPERATIONAL_REPORT_KEY] = current[OPERATIONAL_REPORT_KEY]
    return merged


def _current_analysis(raw: Optional[str]) -> Optional[dict]:
    return parse_json_field(raw, None, "plan_analysis", expected=dict)


def analyze_plan(
    *,
    plan_url: str,
    house_id: int,
    mode: AnalysisMode,
    db: DbClient,
    storage: StorageClient,
    settings: Settings,
    context_data: Any = None,
    prompt_instruction: Optional[str] = None,
) -> dict:
    """Runs one analysis for a house and returns the merged document."""
    if not settings.gemini_api_key:
        raise ConfigurationError("Missing GEMINI_API_KEY")
    if not db.get_house(house_id):
        raise NotFoundError("House not found", "NOT_FOUND")

    logger.info("Analyzing plan for house %s in %s mode", house_id, mode.value)
    download = download_plan(plan_url, storage, settings.plan_folder)
    prompt = build_prompt(mode, context_data, prompt_instruction)

    start_time = time.time()
    try:
        text = gemini.call_predict_json_with_image(
            prompt,
            download.data,
            api_key=settings.gemini_api_key,
            mime_type=download.content_type,
            model=settings.gemini_model,
        )
    except gemini.GeminiApiError as e:
        raise UpstreamError(str(e)) from e
    except gemini.GeminiInvalidResponseException as e:
        raise UpstreamError(f"Invalid response from Gemini: {e}") from e
    logger.info(
        "Gemini analysis for house %s completed in %.2fs", house_id, time.time() - start_time
    )

    analysis = parse_analysis(text)

    house = db.get_house(house_id)
    if not house:
        raise NotFoundError("House not found", "NOT_FOUND")
    merged = merge_analysis(_current_analysis(house.plan_analysis), analysis, mode)
    db.update_house(house_id, {"plan_analysis": dumps_field(merged)})
    logger.info("Saved %s analysis for house %s", mode.value, house_id)
    return merged
