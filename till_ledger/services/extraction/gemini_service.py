"""
Gemini Extraction Service

DESIGN DECISION: One multimodal model reads text, ticket photos and voice
messages, so there is a single prompt and a single JSON contract.

CRITICAL BOUNDARIES:
- The model reports what the operator said or what the ticket shows
- It NEVER computes the declared total (operator-authoritative)
- Fields not mentioned come back as null and stay absent
- Negative amounts are passed through so the validator can reject them

The LLM is a TRANSLATOR, not an ACCOUNTANT.
"""

import json
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import google.generativeai as genai
from tenacity import retry, stop_after_attempt, wait_exponential

from till_ledger.config import GeminiSettings, get_settings
from till_ledger.models.ledger import LedgerRecord, PartialRecord
from till_ledger.services.extraction.interface import (
    AudioInput,
    ExtractionError,
    ExtractionService,
    ExtractionSource,
    ImageInput,
    TextInput,
)


# JSON key returned by the model -> PartialRecord field
RESPONSE_FIELDS = {
    "cb": "card_actual",
    "espece": "cash_actual",
    "ticket_restaurant": "meal_voucher_actual",
    "depense": "expense_actual",
    "total_declare": "total_declared",
    "tr_declare": "meal_voucher_declared",
    "dep_declare": "expense_declared",
    "total_reel": "total_actual",
}

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")

SYSTEM_PROMPT = """Tu es l'assistant comptable d'un restaurant.
On te donne le compte rendu de caisse d'une journée (texte, photo d'un ticket ou message vocal).
Aujourd'hui nous sommes le {today}.

Réponds UNIQUEMENT avec un objet JSON contenant ces clés :
- "date" : la date au format AAAA-MM-JJ si elle est mentionnée ("hier" = la veille d'aujourd'hui), sinon null
- "cb" : montant encaissé par carte bancaire
- "espece" : montant encaissé en espèces
- "ticket_restaurant" : montant en titres-restaurant (TR)
- "depense" : dépenses payées avec la caisse
- "total_declare" : le total déclaré, UNIQUEMENT s'il est dit explicitement
- "tr_declare" : les TR déclarés, UNIQUEMENT s'ils sont dits explicitement
- "dep_declare" : les dépenses déclarées, UNIQUEMENT si elles sont dites explicitement

Règles :
- Mets null pour toute valeur non mentionnée. Ne devine jamais.
- Ne calcule JAMAIS le total déclaré toi-même.
- Un montant dit "zéro" vaut 0, pas null.
- Garde le signe des montants tels qu'ils sont donnés.
- Les montants sont des nombres (ex: 1250.5), sans symbole €.
"""

MODIFICATION_PROMPT = """
Une saisie est déjà en cours avec ces valeurs :
{current}
L'utilisateur veut la modifier. Renvoie UNIQUEMENT les champs qu'il change,
et null pour tous les autres.
"""


def parse_amount(value: Any) -> Optional[Decimal]:
    """Model output -> Decimal, keeping None as absent."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ExtractionError(f"Invalid amount: {value!r}")
    if isinstance(value, str):
        cleaned = value.replace("€", "").replace(" ", "").replace(",", ".").strip()
        if not cleaned or cleaned.lower() == "null":
            return None
        value = cleaned
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ExtractionError(f"Invalid amount: {value!r}")
    # json.loads accepts NaN and Infinity
    if not amount.is_finite():
        raise ExtractionError(f"Invalid amount: {value!r}")
    return amount


def parse_response(text: str) -> PartialRecord:
    """
    Parse the model's JSON answer into a PartialRecord.

    Raises:
        ExtractionError: If no JSON object can be read
    """
    cleaned = _FENCE.sub("", text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start < 0 or end <= start:
        raise ExtractionError("No JSON object in model response")

    try:
        data = json.loads(cleaned[start:end])
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Malformed JSON in model response: {e}")

    if not isinstance(data, dict):
        raise ExtractionError("Model response is not a JSON object")

    values: dict[str, Any] = {}
    for key, field in RESPONSE_FIELDS.items():
        amount = parse_amount(data.get(key))
        if amount is not None:
            values[field] = amount

    raw_date = data.get("date")
    if isinstance(raw_date, str) and raw_date.strip() and raw_date.strip().lower() != "null":
        values["date_text"] = raw_date.strip()

    return PartialRecord(**values)


class GeminiExtractionService(ExtractionService):
    """
    Figure extraction with Google Gemini.

    Text, image bytes and audio bytes are sent inline with the same prompt.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        today_provider=None,
    ):
        self._settings = settings or get_settings().gemini
        self._today = today_provider or date.today
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def _build_prompt(self, existing: Optional[LedgerRecord]) -> str:
        prompt = SYSTEM_PROMPT.format(today=self._today().isoformat())
        if existing is not None:
            current = {
                "date": existing.entry_date.isoformat(),
                "cb": str(existing.card_actual),
                "espece": str(existing.cash_actual),
                "ticket_restaurant": str(existing.meal_voucher_actual),
                "depense": str(existing.expense_actual),
                "total_declare": str(existing.total_declared),
                "tr_declare": str(existing.meal_voucher_declared),
                "dep_declare": str(existing.expense_declared),
            }
            prompt += MODIFICATION_PROMPT.format(current=json.dumps(current, ensure_ascii=False))
        return prompt

    def _build_parts(self, source: ExtractionSource, prompt: str) -> list:
        if isinstance(source, TextInput):
            return [prompt, f"Message de l'utilisateur : {source.text}"]
        if isinstance(source, ImageInput):
            parts = [prompt, {"mime_type": source.mime_type, "data": source.content}]
            if source.caption:
                parts.append(f"Légende : {source.caption}")
            return parts
        if isinstance(source, AudioInput):
            return [prompt, {"mime_type": source.mime_type, "data": source.content}]
        raise ExtractionError(f"Unsupported input: {type(source).__name__}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, parts: list) -> str:
        response = await self._model.generate_content_async(parts)
        return response.text

    async def extract(
        self,
        source: ExtractionSource,
        existing: Optional[LedgerRecord] = None,
    ) -> PartialRecord:
        """Send the input to Gemini and parse its JSON answer."""
        parts = self._build_parts(source, self._build_prompt(existing))
        try:
            text = await self._generate(parts)
        except Exception as e:
            raise ExtractionError(f"Gemini request failed: {e}")
        return parse_response(text)
