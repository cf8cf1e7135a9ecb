"""
Client for the external AI-summary proxy and the prompts sent to it.
"""
import json
import logging
import os

import httpx

from data_loader import Dataset
from models import RegressionResult


logger = logging.getLogger(__name__)

DEFAULT_INSIGHTS_URL = "http://localhost:8787/ai-insights"
REQUEST_TIMEOUT_SECONDS = 60.0


class InsightsError(Exception):
    """The AI-summary call failed or answered in an unexpected shape."""


def insights_url() -> str:
    return os.environ.get("ANALYTICS_INSIGHTS_URL", DEFAULT_INSIGHTS_URL)


def extract_text(payload: dict) -> str:
    """Pull candidates[0].content.parts[0].text out of a proxy response."""
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise InsightsError("Could not parse AI response.") from exc


async def summarize(
    prompt: str,
    url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """
    Send a prompt to the AI proxy and return its text answer.

    No retries: any transport error, non-2xx status or unexpected body
    raises InsightsError for the caller to surface.
    """
    url = url or insights_url()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)

    try:
        response = await client.post(url, json={"prompt": prompt})
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as exc:
        logger.error("[insights] Request to %s failed: %s", url, exc)
        raise InsightsError(f"Error fetching AI interpretation: {exc}") from exc
    except ValueError as exc:
        raise InsightsError("AI service returned a non-JSON response.") from exc
    finally:
        if owns_client:
            await client.aclose()

    text = extract_text(payload)
    if not isinstance(text, str):
        raise InsightsError("Could not parse AI response.")
    return text


# ============================================================================
# Prompts
# ============================================================================

def dataset_prompt(dataset: Dataset, sample_size: int = 50) -> str:
    """Prompt asking for an overview of the dataset from its first rows."""
    sample = dataset.head(min(dataset.row_count, sample_size))
    return (
        f"Given the following CSV data (headers: {', '.join(dataset.headers)}) and a sample "
        f"of the first {len(sample)} rows: {json.dumps(sample, default=str)}. Provide a "
        f"concise summary of the data, notable trends, anomalies and suggestions for "
        f"further analysis."
    )


def regression_prompt(result: RegressionResult) -> str:
    return (
        "Interpret the following multiple linear regression results for a business "
        f"audience:\n\n{result.summary}"
    )


def rollup_prompt(summary_text: str) -> str:
    return (
        "Review the following performance report and highlight strong and weak "
        f"performers with suggested actions:\n\n{summary_text}"
    )
