"""Payout split suggestions from the Google Gemini generateContent API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings


logger = logging.getLogger(__name__)


def build_split_prompt(members: Sequence[str], total_amount: float) -> str:
    member_list = ", ".join(members)
    return (
        'You are a financial advisor for a community savings group (a "susu" or "ROSCA").\n'
        "Your task is to suggest a fair and logical way to split a payout.\n\n"
        "Rules:\n"
        "1. Your entire response MUST be a single, minified JSON object. "
        "Do not include any text before or after the JSON.\n"
        '2. The JSON object must have two keys: "recipients" (an array of addresses) '
        'and "amounts" (an array of corresponding numeric amounts).\n'
        '3. The sum of all "amounts" must exactly equal the totalAmount provided.\n'
        "4. For this version, provide a simple, equal split among all members.\n\n"
        "Group Details:\n"
        f"- Members: [{member_list}]\n"
        f"- Total Amount to Split: {total_amount}\n\n"
        "Now, provide the JSON object for the split."
    )


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class GeminiSplitAdvisor:
    """Asks Gemini how to divide a vault payout between members."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.api_url = api_url or settings.gemini_api_url
        self.timeout = timeout or settings.ai_request_timeout_seconds
        self._client = http_client

    async def ready(self) -> bool:
        return bool(self.api_key)

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        params = {"key": self.api_key}
        if self._client is not None:
            response = await self._client.post(self.api_url, params=params, json=body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, params=params, json=body)
        response.raise_for_status()
        return response.json()

    async def suggest_split(self, members: List[str], total_amount: float) -> Dict[str, Any]:
        """
        Suggest recipients and amounts for a payout.

        Returns:
            ``{"recipients": [...], "amounts": [...]}`` or ``{"error": "..."}``
        """
        if not await self.ready():
            logger.error("Gemini API key is not configured")
            return {"error": "AI service is not configured."}
        if not members:
            return {"error": "No members to split funds among."}

        logger.info(f"Requesting split suggestion for {len(members)} members, total={total_amount}")
        body = {"contents": [{"parts": [{"text": build_split_prompt(members, total_amount)}]}]}

        try:
            data = await self._post(body)
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except httpx.HTTPStatusError as exc:
            logger.error(f"Gemini API error ({exc.response.status_code}): {exc.response.text}")
            return {"error": "Could not get a suggestion from the AI service."}
        except (httpx.RequestError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error(f"Gemini request failed: {exc}")
            return {"error": "Could not get a suggestion from the AI service."}

        logger.debug(f"Gemini raw response: {text}")
        try:
            suggestion = json.loads(_strip_fences(text))
        except json.JSONDecodeError as exc:
            logger.error(f"Failed to parse JSON from AI response: {exc}")
            return {"error": "AI returned an invalid response format."}

        if not isinstance(suggestion, dict) or not {"recipients", "amounts"} <= suggestion.keys():
            logger.error("AI response is missing recipients/amounts")
            return {"error": "AI returned an invalid response format."}
        return suggestion
