"""
Tests for input validation utilities
"""
import pytest
from datetime import datetime
from validators import (
    ValidationError,
    validate_required_fields,
    validate_email,
    validate_phone,
    validate_slug,
    validate_vin,
    validate_string_length,
    validate_number_range,
    sanitize_string,
    parse_number,
    parse_datetime,
    validate_deal_request,
    validate_line_item_request,
    validate_payment_request,
)



@pytest.mark.unit
class TestRequiredFields:
    """Tests for required fields validation"""

    def test_validate_all_fields_present(self):
        """Test validation passes when all fields present"""
        data = {'name': 'John', 'email': 'john@example.com'}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is True
        assert error is None

    def test_validate_missing_field(self):
        """Test validation fails when field missing"""
        data = {'name': 'John'}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is False
        assert 'email' in error

    def test_validate_empty_field(self):
        """Test validation fails when field is empty string"""
        data = {'name': 'John', 'email': ''}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is False

    def test_validate_none_field(self):
        """Test validation fails when field is None"""
        data = {'name': 'John', 'email': None}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is False


@pytest.mark.unit
class TestEmailValidation:
    """Tests for email validation"""

    def test_valid_email(self):
        """Test valid email passes"""
        is_valid, error = validate_email('test@example.com')
        assert is_valid is True
        assert error is None

    def test_valid_email_with_subdomain(self):
        """Test valid email with subdomain passes"""
        is_valid, error = validate_email('user@mail.example.com')
        assert is_valid is True

    def test_invalid_email_no_at(self):
        """Test invalid email without @ fails"""
        is_valid, error = validate_email('invalidemail.com')
        assert is_valid is False

    def test_invalid_email_no_domain(self):
        """Test invalid email without domain fails"""
        is_valid, error = validate_email('test@')
        assert is_valid is False

    def test_invalid_email_too_long(self):
        """Test email that's too long fails"""
        long_email = 'a' * 250 + '@example.com'
        is_valid, error = validate_email(long_email)
        assert is_valid is False

    def test_empty_email(self):
        """Test empty email fails"""
        is_valid, error = validate_email('')
        assert is_valid is False


@pytest.mark.unit
class TestPhoneValidation:
    """Tests for phone number validation"""

    def test_valid_phone_with_country_code(self):
        """Test valid phone with country code passes"""
        is_valid, error = validate_phone('+1234567890')
        assert is_valid is True

    def test_valid_phone_without_country_code(self):
        """Test valid phone without country code passes"""
        is_valid, error = validate_phone('1234567890')
        assert is_valid is True

    def test_valid_phone_with_formatting(self):
        """Test valid phone with formatting passes"""
        is_valid, error = validate_phone('(123) 456-7890')
        assert is_valid is True

    def test_invalid_phone_too_short(self):
        """Test phone that's too short fails"""
        is_valid, error = validate_phone('12345')
        assert is_valid is False

    def test_invalid_phone_letters(self):
        """Test phone with letters fails"""
        is_valid, error = validate_phone('123-ABC-7890')
        assert is_valid is False


@pytest.mark.unit
class TestStringValidation:
    """Tests for string length validation"""

    def test_valid_string_length(self):
        """Test string within length limits passes"""
        is_valid, error = validate_string_length('test', min_length=1, max_length=10)
        assert is_valid is True

    def test_string_too_short(self):
        """Test string below minimum fails"""
        is_valid, error = validate_string_length('a', min_length=5)
        assert is_valid is False

    def test_string_too_long(self):
        """Test string above maximum fails"""
        is_valid, error = validate_string_length('a' * 100, max_length=50)
        assert is_valid is False

    def test_non_string_value(self):
        """Test non-string value fails"""
        is_valid, error = validate_string_length(123)
        assert is_valid is False


@pytest.mark.unit
class TestNumberValidation:
    """Tests for number range validation"""

    def test_valid_number_in_range(self):
        """Test number within range passes"""
        is_valid, error = validate_number_range(5, min_value=0, max_value=10)
        assert is_valid is True

    def test_number_below_minimum(self):
        """Test number below minimum fails"""
        is_valid, error = validate_number_range(-5, min_value=0)
        assert is_valid is False

    def test_number_above_maximum(self):
        """Test number above maximum fails"""
        is_valid, error = validate_number_range(15, max_value=10)
        assert is_valid is False

    def test_non_number_value(self):
        """Test non-number value fails"""
        is_valid, error = validate_number_range('not a number')
        assert is_valid is False


@pytest.mark.unit
class TestStringsanitization:
    """Tests for string sanitization"""

    def test_sanitize_removes_null_bytes(self):
        """Test sanitization removes null bytes"""
        result = sanitize_string('test\x00string')
        assert '\x00' not in result

    def test_sanitize_trims_whitespace(self):
        """Test sanitization trims whitespace"""
        result = sanitize_string('  test  ')
        assert result == 'test'

    def test_sanitize_limits_length(self):
        """Test sanitization limits length"""
        result = sanitize_string('a' * 2000, max_length=100)
        assert len(result) == 100

    def test_sanitize_handles_non_string(self):
        """Test sanitization handles non-string input"""
        result = sanitize_string(123)
        assert result == '123'




@pytest.mark.unit
class TestSlugAndVin:
    """Tests for shop slug and VIN formats"""

    def test_valid_slug(self):
        """Test hyphenated lowercase slug passes"""
        assert validate_slug('main-street-auto') == (True, None)

    def test_invalid_slugs(self):
        """Test uppercase, spaces and doubled hyphens fail"""
        for slug in ('Main-Street', 'main street', 'main--street', '-main', ''):
            is_valid, _ = validate_slug(slug)
            assert is_valid is False

    def test_valid_vin(self):
        """Test a 17-character VIN passes, case-insensitively"""
        assert validate_vin('1hgcm82633a004352')[0] is True

    def test_vin_rejects_i_o_q(self):
        """Test that VINs cannot contain I, O or Q"""
        is_valid, error = validate_vin('1HGCM82633A00435O')
        assert is_valid is False
        assert 'I, O and Q' in error

    def test_vin_wrong_length(self):
        """Test that short VINs fail"""
        assert validate_vin('1HGCM82633')[0] is False


@pytest.mark.unit
class TestParsing:
    """Tests for number and date coercion"""

    def test_parse_number_from_string(self):
        """Test numeric strings become floats"""
        assert parse_number('12.5', 'amount') == 12.5

    def test_parse_number_default(self):
        """Test empty values return the default"""
        assert parse_number(None, 'amount', default=0) == 0
        assert parse_number('', 'amount') is None

    def test_parse_number_rejects_text_and_bools(self):
        """Test that non-numeric values raise with the field name"""
        with pytest.raises(ValidationError) as exc_info:
            parse_number('abc', 'amount')
        assert exc_info.value.field == 'amount'
        with pytest.raises(ValidationError):
            parse_number(True, 'amount')

    def test_parse_datetime_iso(self):
        """Test ISO timestamps parse"""
        assert parse_datetime('2026-03-01T10:30:00', 'nextFollowUp') == datetime(2026, 3, 1, 10, 30)

    def test_parse_datetime_converts_to_naive_utc(self):
        """Test that offsets are normalized to naive UTC"""
        parsed = parse_datetime('2026-03-01T10:30:00+02:00', 'nextFollowUp')
        assert parsed == datetime(2026, 3, 1, 8, 30)
        assert parsed.tzinfo is None

    def test_parse_datetime_invalid(self):
        """Test unparseable dates raise"""
        with pytest.raises(ValidationError):
            parse_datetime('not a date at all', 'nextFollowUp')


@pytest.mark.unit
class TestDealRequestValidation:
    """Tests for deal payloads"""

    def test_valid_deal(self):
        """Test a minimal deal passes"""
        assert validate_deal_request({'businessName': 'Corner Cafe'}) == (True, None)

    def test_missing_business_name(self):
        """Test that creates need a business name"""
        is_valid, error = validate_deal_request({'contactName': 'Sam'})
        assert is_valid is False
        assert 'businessName' in error

    def test_partial_update_needs_nothing(self):
        """Test that updates may omit the business name"""
        assert validate_deal_request({'priority': 'high'}, partial=True)[0] is True

    def test_invalid_priority_and_probability(self):
        """Test enum and range checks"""
        assert validate_deal_request({'businessName': 'A', 'priority': 'urgent'})[0] is False
        assert validate_deal_request({'businessName': 'A', 'dealProbability': 150})[0] is False

    def test_negative_volume(self):
        """Test that money fields cannot be negative"""
        is_valid, error = validate_deal_request({'businessName': 'A', 'estimatedMonthlyVolume': -1})
        assert is_valid is False
        assert 'estimatedMonthlyVolume' in error


@pytest.mark.unit
class TestLineItemAndPaymentValidation:
    """Tests for repair order line item and payment payloads"""

    def test_valid_line_item(self):
        """Test a labor line passes"""
        data = {'type': 'labor', 'description': 'Brake job', 'laborHours': 2}
        assert validate_line_item_request(data) == (True, None)

    def test_line_item_bad_type(self):
        """Test unknown line types fail"""
        assert validate_line_item_request({'type': 'tip', 'description': 'x'})[0] is False

    def test_line_item_discount_is_fraction(self):
        """Test discountPercent must be between 0 and 1"""
        data = {'type': 'parts', 'description': 'Pads', 'discountPercent': 10}
        assert validate_line_item_request(data)[0] is False

    def test_line_item_negative_quantity(self):
        """Test negative quantities fail"""
        assert validate_line_item_request({'quantity': -2}, partial=True)[0] is False

    def test_valid_payment(self):
        """Test a card payment passes"""
        assert validate_payment_request({'amount': '50.00', 'method': 'card'}) == (True, None)

    def test_payment_requires_amount_and_method(self):
        """Test missing fields fail"""
        assert validate_payment_request({'method': 'cash'}) == (False, 'Amount and method are required')

    def test_payment_rejects_unknown_method_and_zero(self):
        """Test method enum and positive amount"""
        assert validate_payment_request({'amount': 10, 'method': 'crypto'})[1] == 'Invalid payment method'
        assert validate_payment_request({'amount': 0, 'method': 'cash'})[0] is False
