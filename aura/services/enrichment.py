"""
Message enrichment over an OpenAI-compatible chat-completions API.

Key decisions:
- The request body is fixed: temperature 0.6, at most 300 tokens
- Parsing never raises: a malformed completion degrades to null messages and
  a default explanation, and the deterministic templates stay in charge
- Only HTTP-level failures surface as `EnrichmentHTTPError`
"""

import json
import re
from typing import Any

import httpx
import structlog

from aura.config import EnrichmentConfig
from aura.domain.models import (
    ConnectivityStatus,
    GeneratedMessages,
    InterventionLevel,
    MessageContext,
)
from aura.services.baseline import DEFAULT_BASELINE, is_night_hour
from aura.services.intervention import format_clock, round_half_up
from aura.services.risk_scoring import urgency_band

logger = structlog.get_logger(__name__)

TEMPERATURE = 0.6
MAX_TOKENS = 300

RESIDENT_MESSAGE_LIMIT = 200
STAFF_MESSAGE_LIMIT = 300
EXPLANATION_LIMIT = 500
ERROR_BODY_LIMIT = 200

DEFAULT_EXPLANATION = "The system is monitoring the resident based on current observations."

_FENCE_OPEN = re.compile(r"```json?\s*")

LEVEL_DESCRIPTIONS = {
    InterventionLevel.AMBIENT_CUE: "Ambient Cue (environmental only)",
    InterventionLevel.GENTLE_PROMPT: "Gentle Prompt (resident message)",
    InterventionLevel.STAFF_SOFT_ALERT: "Staff Soft Alert (resident + staff message)",
    InterventionLevel.ESCALATE: "Escalation (urgent staff + resident reassurance)",
}

SYSTEM_PROMPT = """You are a message-generation module inside AURA, an ambient care system \
for assisted-living facilities. Your job is to produce exactly three fields in JSON:

{
  "residentMessage": string | null,
  "staffMessage": string | null,
  "explanationText": string
}

RULES — RESIDENT MESSAGE:
- Never alarming or anxiety-inducing.
- No medical claims, diagnostic language, or clinical terms.
- Maximum 2 short sentences.
- Warm, gentle, supportive tone — like a kind neighbor.
- For Level 1 (Ambient Cue), set to null (no spoken message needed).
- Refer to the resident by first name when provided.

RULES — STAFF MESSAGE:
- Concise cause-and-effect reasoning in 1–2 sentences.
- Include the specific risk scores and top contributing factor.
- Actionable: what to check or do.
- For Level 1 and Level 2, set to null (no staff alert needed).
- Professional but warm tone.

RULES — EXPLANATION TEXT:
- 2–3 sentences for the "Why this decision?" panel.
- Non-technical language a family member could understand.
- Reference the specific contributing factors and how they combine.
- Never use the word "algorithm" or "AI decided".
- Frame as observation-based reasoning.

NEVER output anything outside the JSON object. No markdown fences."""


class EnrichmentError(Exception):
    """Base class for enrichment failures surfaced to the caller."""


class EnrichmentHTTPError(EnrichmentError):
    """Non-2xx response from the completions endpoint."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body[:ERROR_BODY_LIMIT]
        super().__init__(f"LLM API error {status_code}: {self.body}")


def build_user_prompt(ctx: MessageContext) -> str:
    """Render the per-cycle context block sent as the user message."""
    night = is_night_hour(ctx.time_of_day, DEFAULT_BASELINE)
    risks = ctx.risk_scores
    profile = ctx.resident_profile

    vitals_note = ""
    if ctx.use_wearables and ctx.heart_rate is not None and ctx.sp_o2 is not None:
        vitals_note = (
            f"Wearable vitals: HR {round_half_up(ctx.heart_rate)} bpm, SpO2 {ctx.sp_o2:.0f}%."
        )

    lines = [
        "CONTEXT:",
        f"- Resident: {profile.name}, age {profile.age}",
        f"- Mobility baseline: {profile.mobility_baseline:g}/100",
        f"- Cognitive concern level: {profile.cognitive_concern_level.value}",
        f"- Time: {format_clock(ctx.time_of_day)} ({'nighttime' if night else 'daytime'})",
        f"- Fall risk: {round_half_up(risks.fall)}% ({urgency_band(risks.fall).value})",
        f"- Cognitive concern signal: {round_half_up(risks.cognitive)}% "
        f"({urgency_band(risks.cognitive).value})",
        f"- Loneliness risk: {round_half_up(risks.loneliness)}% "
        f"({urgency_band(risks.loneliness).value})",
        f"- Overall urgency: {round_half_up(risks.overall)}% ({urgency_band(risks.overall).value})",
        f"- Intervention level: {int(ctx.intervention_level)} — "
        f"{LEVEL_DESCRIPTIONS[ctx.intervention_level]}",
        f"- Top contributing factors: {', '.join(ctx.top_contributing_factors)}",
        f"- Staff load: {round_half_up(ctx.staff_load)}%",
        vitals_note,
        "",
        "Generate the JSON response following the system rules.",
    ]
    return "\n".join(lines)


def build_request_body(ctx: MessageContext, config: EnrichmentConfig) -> dict[str, Any]:
    return {
        "model": config.model,
        "temperature": TEMPERATURE,
        "max_tokens": MAX_TOKENS,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(ctx)},
        ],
    }


def _capped(value: Any, limit: int) -> str | None:
    return value[:limit] if isinstance(value, str) else None


def parse_generated_messages(raw: str) -> GeneratedMessages:
    """
    Parse completion content into capped messages.

    Code fences are stripped first. Anything that is not a JSON object yields
    null messages and the default explanation rather than an exception.
    """
    cleaned = _FENCE_OPEN.sub("", raw).replace("```", "").strip()

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("enrichment_payload_malformed", error=str(e), preview=cleaned[:80])
        parsed = {}

    if not isinstance(parsed, dict):
        logger.warning("enrichment_payload_not_object", payload_type=type(parsed).__name__)
        parsed = {}

    return GeneratedMessages(
        resident_message=_capped(parsed.get("residentMessage"), RESIDENT_MESSAGE_LIMIT),
        staff_message=_capped(parsed.get("staffMessage"), STAFF_MESSAGE_LIMIT),
        explanation_text=_capped(parsed.get("explanationText"), EXPLANATION_LIMIT)
        or DEFAULT_EXPLANATION,
    )


def _completion_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class EnrichmentClient:
    """
    Async client for the completions endpoint.

    Implements the `MessageGenerator` protocol used by the message controller.
    An `httpx.AsyncClient` can be injected (tests pass one backed by
    `httpx.MockTransport`); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._http_client = http_client
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(component="enrichment_client")

    async def _send(self, request: httpx.Request) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.send(request)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.send(request)

    async def generate(self, ctx: MessageContext, config: EnrichmentConfig) -> GeneratedMessages:
        """Request generated messages for one context; raises on HTTP failure."""
        request = httpx.Request(
            "POST",
            f"{config.api_root}/chat/completions",
            headers={"Authorization": f"Bearer {config.api_key}"},
            json=build_request_body(ctx, config),
        )

        response = await self._send(request)
        if not response.is_success:
            self.logger.warning(
                "enrichment_http_error", status_code=response.status_code, model=config.model
            )
            raise EnrichmentHTTPError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            # Covers bodies that are not JSON and bodies that are not valid text
            data = None

        messages = parse_generated_messages(_completion_content(data))
        self.logger.info(
            "enrichment_generated",
            model=config.model,
            level=int(ctx.intervention_level),
            has_resident_message=messages.resident_message is not None,
            has_staff_message=messages.staff_message is not None,
        )
        return messages

    async def check_connectivity(self, config: EnrichmentConfig) -> ConnectivityStatus:
        """
        Check reachability with `GET /models`.

        Transport failures and non-2xx responses are reported as unreachable
        rather than raised. Engine state is never touched.
        """
        request = httpx.Request(
            "GET",
            f"{config.api_root}/models",
            headers={"Authorization": f"Bearer {config.api_key}"},
        )
        try:
            response = await self._send(request)
        except httpx.HTTPError as e:
            self.logger.warning("enrichment_unreachable", error=str(e))
            return ConnectivityStatus(reachable=False, detail=str(e))

        if not response.is_success:
            self.logger.warning("enrichment_rejected", status_code=response.status_code)
            return ConnectivityStatus(
                reachable=False,
                status_code=response.status_code,
                detail=str(EnrichmentHTTPError(response.status_code, response.text)),
            )

        self.logger.info("enrichment_connected", status_code=response.status_code)
        return ConnectivityStatus(reachable=True, status_code=response.status_code)
