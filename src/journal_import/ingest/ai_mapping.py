"""Optional OpenAI-backed column mapping suggestions.

Suggestions are advisory: they are merged into the mapping the user already
has and never replace it. Every failure degrades to an empty suggestion.
"""

from __future__ import annotations

import json
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TYPE_CHECKING

from journal_import.config.settings import get_settings
from journal_import.ingest.column_mapping import ColumnMapping
from journal_import.ingest.models import DestinationField, RawTable
from journal_import.utils.logging import get_logger

if TYPE_CHECKING:
    from openai import OpenAI

logger = get_logger(__name__)

SAMPLE_ROWS = 5

_FIELD_HELP: dict[DestinationField, str] = {
    DestinationField.ACCOUNT_NUMBER: "Broker or prop-firm account identifier.",
    DestinationField.INSTRUMENT: "Traded symbol or contract, e.g. ESZ4, NQ, MES.",
    DestinationField.ENTRY_ID: "Order id of the opening fill.",
    DestinationField.CLOSE_ID: "Order id of the closing fill.",
    DestinationField.QUANTITY: "Number of contracts or shares traded.",
    DestinationField.ENTRY_PRICE: "Price of the opening fill (buy price for longs).",
    DestinationField.CLOSE_PRICE: "Price of the closing fill (sell price for longs).",
    DestinationField.ENTRY_DATE: "Timestamp of the opening fill.",
    DestinationField.CLOSE_DATE: "Timestamp of the closing fill.",
    DestinationField.PNL: "Realized profit or loss of the trade.",
    DestinationField.TIME_IN_POSITION: "Duration the position was held.",
    DestinationField.SIDE: "Direction: long/short or buy/sell.",
    DestinationField.COMMISSION: "Commissions and fees paid for the trade.",
}


def build_openai_client() -> Any:
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured.")
    try:
        from openai import OpenAI
    except ImportError as exc:
        raise RuntimeError(
            "openai package is not installed. Install `openai` to enable AI column mapping."
        ) from exc
    return OpenAI(api_key=api_key)


def _mapping_instructions() -> str:
    fields = "\n".join(f"- {field.value}: {help_text}" for field, help_text in _FIELD_HELP.items())
    return (
        "You map columns of a trading platform export to journal fields.\n"
        "Return only a JSON object whose keys are field names from the list below and whose "
        "values are header names copied exactly from fieldColumns. When a header name appears "
        "more than once, append _<position> using its 1-based position in fieldColumns. "
        "Omit fields with no matching column and never map one column to two fields.\n"
        f"Fields:\n{fields}"
    )


def build_mapping_request(headers: list[str], sample_rows: list[dict[str, str]]) -> dict[str, Any]:
    return {
        "fieldColumns": [str(header) for header in headers],
        "firstRows": list(sample_rows[:SAMPLE_ROWS]),
    }


def extract_response_text(response: Any) -> str:
    return str(getattr(response, "output_text", "") or "").strip()


def parse_suggestions(text: str) -> dict[str, str]:
    """Known destinations with string values from a JSON object; anything else dropped."""
    payload = text.strip()
    if payload.startswith("```"):
        payload = payload.strip("`")
        if payload.lower().startswith("json"):
            payload = payload[4:]
    loaded = json.loads(payload)
    if not isinstance(loaded, dict):
        raise ValueError("Mapping suggestion is not a JSON object.")
    known = {field.value for field in DestinationField}
    return {
        str(key): value.strip()
        for key, value in loaded.items()
        if key in known and isinstance(value, str) and value.strip()
    }


def request_mapping_suggestions(
    headers: list[str],
    sample_rows: list[dict[str, str]],
    *,
    client: OpenAI | None = None,
    model: str | None = None,
) -> dict[str, str]:
    try:
        local_client = client or build_openai_client()
        response = local_client.responses.create(
            model=model or get_settings().openai_model,
            instructions=_mapping_instructions(),
            input=json.dumps(build_mapping_request(headers, sample_rows)),
        )
        return parse_suggestions(extract_response_text(response))
    except Exception as exc:
        logger.warning("Column mapping suggestion failed: %s", exc)
        return {}


def submit_mapping_suggestions(
    headers: list[str],
    sample_rows: list[dict[str, str]],
    on_result: Callable[[dict[str, str]], None],
    *,
    client: OpenAI | None = None,
    model: str | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> Future:
    """Request suggestions in the background; ``on_result`` gets the final dict."""
    owned = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="ai-mapping")
    future = pool.submit(request_mapping_suggestions, headers, sample_rows, client=client, model=model)

    def _deliver(done: Future) -> None:
        on_result(done.result())

    future.add_done_callback(_deliver)
    if owned:
        pool.shutdown(wait=False)
    return future


def suggest_and_merge(
    mapping: ColumnMapping,
    table: RawTable,
    *,
    client: OpenAI | None = None,
    model: str | None = None,
) -> list[str]:
    if not get_settings().enable_ai_mapping:
        logger.debug("AI column mapping disabled")
        return []
    suggestions = request_mapping_suggestions(
        table.headers,
        table.sample(SAMPLE_ROWS),
        client=client,
        model=model,
    )
    if not suggestions:
        return []
    return mapping.merge_suggestions(table.headers, suggestions)
