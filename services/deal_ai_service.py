"""
AI assistance for pipeline deals: meeting summaries and sales emails.

Prompts are built here; transport, retries and provider choice live in
``ai_service.AIService``.
"""

import json
import logging
from typing import Any, Dict, Optional

from ai_service import AIService, AIServiceError
from validators import ValidationError

logger = logging.getLogger(__name__)

SENTIMENTS = ('positive', 'neutral', 'negative')

SUMMARY_SYSTEM_PROMPT = """You analyze a sales representative's notes or voice transcript from a merchant visit.

Extract:
1. A brief summary (2-3 sentences)
2. Key takeaways
3. Objections or concerns the merchant raised
4. Recommended next steps
5. Overall sentiment (positive, neutral, or negative)
6. Whether this looks like a hot lead (likely to convert)

Respond with a JSON object only:
{
  "summary": "...",
  "keyTakeaways": ["..."],
  "objections": ["..."],
  "nextSteps": ["..."],
  "sentiment": "positive|neutral|negative",
  "hotLead": true|false
}"""

POLISH_SYSTEM_PROMPT = """You are an email writing assistant for sales representatives.
Take a rough draft and polish it to be professional, clear and persuasive.

Guidelines:
- Keep the original intent and key points
- Professional but friendly
- Concise and easy to read
- Correct grammar and punctuation
- A clear call-to-action when appropriate
- Tone: {tone}
{context}
Return ONLY the polished email text, with no explanations."""

GENERATE_SYSTEM_PROMPT = """You are an email writing assistant for sales representatives in the payment processing industry.
Write a professional, persuasive email from the context provided.

Guidelines:
- Professional but friendly
- Under 200 words
- A clear call-to-action
- Address the contact by name when one is given
- Tone: {tone}
{business}
Return ONLY the email body: no subject line, no explanations."""


def _string_list(value) -> list:
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, '')]
    if value:
        return [str(value)]
    return []


def parse_summary_response(content: str) -> Dict[str, Any]:
    """
    Parse the model's JSON reply into summary fields.

    Raises:
        AIServiceError: the reply is not a JSON object
    """
    try:
        data = json.loads(content or '{}')
    except ValueError as e:
        raise AIServiceError(f"Failed to parse AI response: {e}")
    if not isinstance(data, dict):
        raise AIServiceError("Failed to parse AI response: expected an object")

    sentiment = str(data.get('sentiment') or 'neutral').lower()
    return {
        'summary': str(data.get('summary') or '').strip(),
        'keyTakeaways': _string_list(data.get('keyTakeaways')),
        'objections': _string_list(data.get('objections')),
        'nextSteps': _string_list(data.get('nextSteps')),
        'sentiment': sentiment if sentiment in SENTIMENTS else 'neutral',
        'hotLead': data.get('hotLead') is True or str(data.get('hotLead')).lower() == 'true',
    }


class DealAIService:
    """Deal-specific prompts on top of the shared AIService."""

    def __init__(self, ai_service: AIService):
        self.ai = ai_service

    def summarize_deal(self, deal: Dict[str, Any]) -> Dict[str, Any]:
        """
        Summarize a deal's voice transcript, falling back to its notes.

        Raises:
            ValidationError: the deal has neither
        """
        source = (deal.get('voiceTranscript') or '').strip() or (deal.get('notes') or '').strip()
        if not source:
            raise ValidationError('No transcript or notes to summarize')

        logger.info(f"Summarizing deal {deal.get('id')} ({len(source)} chars)")
        content = self.ai.complete(
            SUMMARY_SYSTEM_PROMPT,
            f"Analyze these merchant visit notes/transcript:\n\n{source}",
            max_tokens=1024,
            json_mode=True
        )
        return parse_summary_response(content)

    def polish_email(self, draft: str, tone: Optional[str] = None, context: Optional[str] = None) -> str:
        if not draft or not draft.strip():
            raise ValidationError('Email draft is required', 'draft')

        system = POLISH_SYSTEM_PROMPT.format(
            tone=tone or 'professional and friendly',
            context=f"Context: {context}\n" if context else ''
        )
        polished = self.ai.complete(system, f"Please polish this email draft:\n\n{draft}", max_tokens=1024)
        return polished or draft

    def generate_email(self, data: Dict[str, Any]) -> str:
        """Write an email for ``businessName`` with the given ``purpose``."""
        business_name = (data.get('businessName') or '').strip()
        purpose = (data.get('purpose') or '').strip()
        if not business_name or not purpose:
            raise ValidationError('Business name and purpose are required')

        business_lines = []
        if data.get('businessType'):
            business_lines.append(f"Business type: {data['businessType']}")
        if data.get('agentNotes'):
            business_lines.append(f"Agent notes from the visit: {data['agentNotes']}")
        system = GENERATE_SYSTEM_PROMPT.format(
            tone=data.get('tone') or 'professional and friendly',
            business='\n'.join(business_lines) + '\n' if business_lines else ''
        )

        prompt_lines = [f"Business: {business_name}"]
        if data.get('contactName'):
            prompt_lines.append(f"Contact: {data['contactName']}")
        prompt_lines.append(f"Purpose: {purpose}")
        if data.get('keyPoints'):
            key_points = data['keyPoints']
            if isinstance(key_points, list):
                key_points = '; '.join(str(p) for p in key_points)
            prompt_lines.append(f"Key points to include: {key_points}")

        return self.ai.complete(system, "Generate an email for:\n" + '\n'.join(prompt_lines), max_tokens=2048)
