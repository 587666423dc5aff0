"""
AI image analysis service (advisory only).

Sends a claim photo to an OpenAI-compatible vision endpoint and turns the
answer into hints: device category, brand, model, color, severity, and
warnings about a device mismatch or visible physical damage. Nothing here
ever feeds the decision engine; the wizard may apply the proposed patch to
empty draft fields and nothing more.
"""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from claimportal.core import AdvisoryServiceError, logger, settings
from claimportal.db.models import ClaimType, ProductType
from claimportal.orchestration.claim_wizard.state import AIAnalysisSnapshot, ClaimDraft
from claimportal.orchestration.claim_wizard.vocabulary import (
    DAMAGE_TYPES,
    DEVICE_CATEGORIES,
    match_device_category,
    normalize_severity,
)


SYSTEM_PROMPT = f"""You are an expert device identification and damage assessment specialist. Analyze the image and extract device information in JSON format.

Return ONLY valid JSON with this exact structure:
{{
  "deviceCategory": "one of: {', '.join(DEVICE_CATEGORIES)}",
  "brand": "device brand/manufacturer name (e.g., Apple, Samsung, Sony)",
  "model": "specific model if visible (or 'Unknown' if not visible)",
  "color": "primary color of the device",
  "damageType": "one of: {', '.join(DAMAGE_TYPES)}, No Visible Damage",
  "severityLevel": "one of: Critical, High, Medium, Low",
  "explanation": "brief 1-2 sentence description of what you see and the damage assessment",
  "hasVisiblePhysicalDamage": true or false,
  "physicalDamageDescription": "description of visible physical damage, or null if none detected"
}}"""

USER_PROMPT = (
    "Analyze this device image and provide comprehensive device identification and damage "
    "assessment. Return ONLY the JSON object, no other text."
)

# Guesses that carry no information and are never proposed
UNINFORMATIVE = {"", "other", "unknown", "n/a", "none"}


@dataclass(frozen=True)
class AIAnalysisResult:
    """Parsed, normalized answer from the vision model."""
    device_category: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    damage_type: Optional[str] = None
    severity_level: Optional[str] = None
    explanation: str = ""
    has_visible_physical_damage: bool = False
    physical_damage_description: Optional[str] = None
    device_mismatch: bool = False
    mismatch_warning: Optional[str] = None
    physical_damage_warning: Optional[str] = None

    def to_snapshot(self, attachment_id: str) -> AIAnalysisSnapshot:
        return AIAnalysisSnapshot(
            attachment_id=attachment_id,
            assessment=self.explanation,
            severity_level=self.severity_level,
            device_category=self.device_category,
            damage_type=self.damage_type,
            device_mismatch=self.device_mismatch,
            mismatch_warning=self.mismatch_warning,
            has_visible_physical_damage=self.has_visible_physical_damage,
            physical_damage_description=self.physical_damage_description,
        )


def _extract_json(content: str) -> Optional[Dict[str, Any]]:
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}")
        if start != -1 and end != -1 and end > start:
            try:
                return json.loads(content[start : end + 1])
            except json.JSONDecodeError:
                pass
    return None


def _informative(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return None if value.lower() in UNINFORMATIVE else value


def categories_match(detected: str, insured: str) -> bool:
    """Substring match either way, then synonym match on the normalized category."""
    detected_l, insured_l = detected.lower().strip(), insured.lower().strip()
    if detected_l in insured_l or insured_l in detected_l:
        return True
    detected_norm = match_device_category(detected_l)
    insured_norm = match_device_category(insured_l)
    return detected_norm is not None and detected_norm == insured_norm


def interpret_analysis(
    raw: Dict[str, Any],
    insured_category: Optional[str] = None,
    claim_type: Optional[ClaimType] = None,
    product_type: Optional[str] = None,
) -> AIAnalysisResult:
    """Normalize the model's JSON and derive the advisory warnings."""
    detected = _informative(raw.get("deviceCategory"))
    category = match_device_category(detected) or detected

    mismatch = False
    mismatch_warning = None
    if insured_category and detected and not categories_match(detected, insured_category):
        mismatch = True
        mismatch_warning = (
            f"The photo appears to show a {detected}, but the insured device is a "
            f"{insured_category}. Please verify you've uploaded the correct photo."
        )

    has_damage = bool(raw.get("hasVisiblePhysicalDamage"))
    damage_description = _informative(raw.get("physicalDamageDescription"))
    damage_warning = None
    if (
        has_damage
        and claim_type == ClaimType.BREAKDOWN
        and product_type == ProductType.EXTENDED_WARRANTY.value
    ):
        damage_warning = (
            f"Physical damage detected: {damage_description or 'visible damage'}. "
            "Extended Warranty does not cover physical damage - only mechanical/electrical breakdowns."
        )

    damage_type = _informative(raw.get("damageType"))
    if damage_type not in DAMAGE_TYPES:
        damage_type = None

    return AIAnalysisResult(
        device_category=category,
        brand=_informative(raw.get("brand")),
        model=_informative(raw.get("model")),
        color=_informative(raw.get("color")),
        damage_type=damage_type,
        severity_level=normalize_severity(raw.get("severityLevel")),
        explanation=str(raw.get("explanation") or ""),
        has_visible_physical_damage=has_damage,
        physical_damage_description=damage_description,
        device_mismatch=mismatch,
        mismatch_warning=mismatch_warning,
        physical_damage_warning=damage_warning,
    )


def propose_draft_patch(result: AIAnalysisResult, draft: ClaimDraft) -> Dict[str, Dict[str, Any]]:
    """
    Section changes the analysis suggests.

    Only empty draft fields are filled; anything the claimant typed wins.
    """
    patch: Dict[str, Dict[str, Any]] = {}

    device_hints = {
        "category": result.device_category if result.device_category in DEVICE_CATEGORIES else None,
        "make": result.brand,
        "model": result.model,
        "color": result.color,
    }
    device = {
        name: value
        for name, value in device_hints.items()
        if value and not getattr(draft.device, name)
    }
    if device:
        patch["device"] = device

    if result.severity_level:
        if draft.claim_type == ClaimType.BREAKDOWN and not draft.fault.severity:
            patch["fault"] = {"severity": result.severity_level}
        elif draft.claim_type == ClaimType.DAMAGE and not draft.incident.severity:
            patch["incident"] = {"severity": result.severity_level}

    if draft.claim_type == ClaimType.DAMAGE and result.damage_type and not draft.incident.damage_type:
        patch.setdefault("incident", {})["damage_type"] = result.damage_type

    return patch


class AIAnalysisService:
    """Client for the vision endpoint. Failures are logged and yield None."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 45.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def _complete(self, payload: Dict[str, Any]) -> str:
        """
        POST a chat completion and return the reply text.

        Raises:
            AdvisoryServiceError: transport failure, error status or unexpected body
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AdvisoryServiceError(f"request failed: {exc}")

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdvisoryServiceError(f"unexpected response body: {exc}")

    async def analyze(
        self,
        image: bytes,
        content_type: str,
        insured_category: Optional[str] = None,
        claim_type: Optional[ClaimType] = None,
        product_type: Optional[str] = None,
    ) -> Optional[AIAnalysisResult]:
        """Analyze one image. Returns None when the service is off or fails."""
        if not self.enabled:
            logger.info("AI analysis skipped: service not configured")
            return None
        if not content_type.startswith("image/"):
            logger.info(f"AI analysis skipped: unsupported content type {content_type}")
            return None

        encoded = base64.b64encode(image).decode("utf-8")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_PROMPT},
                        {"type": "image_url", "image_url": {"url": f"data:{content_type};base64,{encoded}"}},
                    ],
                },
            ],
        }
        try:
            content = await self._complete(payload)
        except AdvisoryServiceError as exc:
            logger.warning(f"AI analysis unavailable: {exc.message}")
            return None

        parsed = _extract_json(content or "")
        if parsed is None:
            logger.warning("AI analysis reply was not JSON, ignoring")
            return None

        result = interpret_analysis(parsed, insured_category, claim_type, product_type)
        logger.info(
            f"AI analysis completed: category={result.device_category} "
            f"severity={result.severity_level} mismatch={result.device_mismatch}"
        )
        return result


_ai_analysis_service: Optional[AIAnalysisService] = None


def get_ai_analysis_service() -> AIAnalysisService:
    """Get or create the AI analysis singleton."""
    global _ai_analysis_service
    if _ai_analysis_service is None:
        _ai_analysis_service = AIAnalysisService(
            base_url=settings.AI_ANALYSIS_URL,
            api_key=settings.AI_ANALYSIS_API_KEY,
            model=settings.AI_ANALYSIS_MODEL,
            timeout=settings.AI_ANALYSIS_TIMEOUT_SECONDS,
        )
    return _ai_analysis_service
