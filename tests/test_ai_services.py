"""
Tests for the AI service wrapper, deal prompts and email endpoints
"""
import json
import pytest
from types import SimpleNamespace
from unittest.mock import Mock, patch
from ai_service import AIService, AIServiceError, AIServiceUnavailable
from services.deal_ai_service import DealAIService, parse_summary_response
from validators import ValidationError


def _config(**overrides):
    config = {
        'ANTHROPIC_API_KEY': None,
        'OPENAI_API_KEY': None,
        'AI_DEFAULT_PROVIDER': 'gpt',
        'AI_RETRY_ATTEMPTS': 2,
        'AI_RETRY_DELAY': 0,
        'AI_TIMEOUT': 5,
        'AI_MODELS': {
            'claude': {'model': 'claude-test', 'max_tokens': 100, 'temperature': 0.7},
            'gpt': {'model': 'gpt-test', 'max_tokens': 100, 'temperature': 0.7},
        },
    }
    config.update(overrides)
    return config


def _gpt_reply(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.mark.unit
class TestAIService:
    """Tests for provider selection, retries and completions"""

    def test_no_keys_means_unavailable(self):
        """Test that no clients are built without keys"""
        service = AIService(_config())
        assert service.is_available('claude') is False
        assert service.is_available('gpt') is False
        assert service.is_available('any') is False

    def test_unconfigured_provider_raises_without_retry(self):
        """Test that an unconfigured provider fails fast"""
        service = AIService(_config())
        with pytest.raises(AIServiceUnavailable):
            service.complete('system', 'prompt')

    @patch('ai_service.openai.OpenAI')
    def test_gpt_completion(self, mock_openai):
        """Test a GPT completion returns the stripped reply"""
        mock_openai.return_value.chat.completions.create.return_value = _gpt_reply('  Hello there  ')
        service = AIService(_config(OPENAI_API_KEY='key'))

        assert service.complete('system', 'prompt', json_mode=True) == 'Hello there'
        params = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert params['model'] == 'gpt-test'
        assert params['response_format'] == {'type': 'json_object'}
        assert params['messages'][0] == {'role': 'system', 'content': 'system'}

    @patch('ai_service.anthropic.Anthropic')
    def test_falls_back_to_configured_provider(self, mock_anthropic):
        """Test that Claude answers when it is the only configured provider"""
        mock_anthropic.return_value.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type='text', text='From Claude')],
            stop_reason='end_turn'
        )
        service = AIService(_config(ANTHROPIC_API_KEY='key'))

        assert service.default_provider() == 'claude'
        assert service.complete('system', 'prompt') == 'From Claude'
        assert service.model_name() == 'claude-test'

    @patch('ai_service.openai.OpenAI')
    def test_retries_then_raises(self, mock_openai):
        """Test API failures are retried and surface as AIServiceError"""
        mock_openai.return_value.chat.completions.create.side_effect = RuntimeError('boom')
        service = AIService(_config(OPENAI_API_KEY='key'))

        with pytest.raises(AIServiceError):
            service.complete('system', 'prompt')
        assert mock_openai.return_value.chat.completions.create.call_count == 2


@pytest.mark.unit
class TestDealPrompts:
    """Tests for deal summary parsing and email prompts"""

    def test_parse_summary_normalizes_fields(self):
        """Test list coercion, sentiment fallback and hot lead flag"""
        parsed = parse_summary_response(json.dumps({
            'summary': ' Good visit ',
            'keyTakeaways': 'One thing',
            'sentiment': 'ecstatic',
            'hotLead': 'true',
        }))
        assert parsed['summary'] == 'Good visit'
        assert parsed['keyTakeaways'] == ['One thing']
        assert parsed['objections'] == []
        assert parsed['sentiment'] == 'neutral'
        assert parsed['hotLead'] is True

    def test_parse_summary_rejects_non_object(self):
        """Test a JSON list reply is an error"""
        with pytest.raises(AIServiceError):
            parse_summary_response('[1, 2]')

    def test_summary_prefers_transcript(self):
        """Test the voice transcript is summarized before notes"""
        ai = Mock()
        ai.complete.return_value = '{"summary": "ok"}'
        DealAIService(ai).summarize_deal({'id': 'd1', 'voiceTranscript': 'Transcript text', 'notes': 'Notes'})
        assert 'Transcript text' in ai.complete.call_args.args[1]

    def test_polish_requires_draft(self):
        """Test an empty draft is rejected"""
        with pytest.raises(ValidationError):
            DealAIService(Mock()).polish_email('   ')

    def test_polish_falls_back_to_draft(self):
        """Test an empty model reply returns the original draft"""
        ai = Mock()
        ai.complete.return_value = ''
        assert DealAIService(ai).polish_email('hi there') == 'hi there'

    def test_generate_requires_business_and_purpose(self):
        """Test generation needs a business name and purpose"""
        with pytest.raises(ValidationError):
            DealAIService(Mock()).generate_email({'businessName': 'Cafe'})


@pytest.mark.integration
class TestEmailEndpoints:
    """Tests for the email drafting routes"""

    def test_polish_email(self, app, agent_client, mock_ai_response):
        """Test polishing returns the model's text"""
        app.ai_service = Mock()
        app.ai_service.complete.return_value = mock_ai_response

        response = agent_client.post('/api/email/polish', json={'draft': 'hey', 'tone': 'formal'})

        assert response.status_code == 200
        assert response.get_json()['polishedEmail'] == mock_ai_response

    def test_generate_email(self, app, agent_client, mock_ai_response):
        """Test generation includes the business and key points in the prompt"""
        app.ai_service = Mock()
        app.ai_service.complete.return_value = mock_ai_response

        response = agent_client.post('/api/email/generate', json={
            'businessName': 'Corner Cafe',
            'purpose': 'follow up on rates',
            'keyPoints': ['no setup fee', 'next-day funding'],
        })

        assert response.status_code == 200
        assert response.get_json()['email'] == mock_ai_response
        prompt = app.ai_service.complete.call_args.args[1]
        assert 'Corner Cafe' in prompt
        assert 'no setup fee; next-day funding' in prompt

    def test_generate_email_missing_fields(self, agent_client):
        """Test a 400 when purpose is missing"""
        response = agent_client.post('/api/email/generate', json={'businessName': 'Corner Cafe'})
        assert response.status_code == 400

    def test_polish_without_ai(self, agent_client):
        """Test a 503 when no provider is configured"""
        response = agent_client.post('/api/email/polish', json={'draft': 'hey'})
        assert response.status_code == 503

    def test_email_requires_login(self, client, seeded):
        """Test anonymous users are rejected"""
        assert client.post('/api/email/polish', json={'draft': 'hey'}).status_code == 401
