"""
Input Validation & Sanitization Utilities
Validation helpers for deal, repair order, payment and staff payloads.
"""
import re
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple
from dateutil import parser as date_parser
import logging

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?1?\d{9,15}$')
SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
VIN_PATTERN = re.compile(r'^[A-HJ-NPR-Z0-9]{17}$')

PAYMENT_METHODS = ('cash', 'card', 'check', 'financing', 'other')
LINE_ITEM_TYPES = ('labor', 'parts', 'sublet', 'fee', 'discount')
DEAL_PRIORITIES = ('low', 'medium', 'high')


class ValidationError(Exception):
    """Raised when request data or a requested state change is invalid (HTTP 400)"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class PermissionDenied(Exception):
    """Raised when the current user's role does not allow an action (HTTP 403)"""
    def __init__(self, message: str = 'Insufficient permissions'):
        self.message = message
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None or data[field] == '']

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    return True, None


def validate_phone(phone: str) -> Tuple[bool, Optional[str]]:
    """Validate phone number format (separators are ignored)"""
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

    return True, None


def validate_slug(slug: str) -> Tuple[bool, Optional[str]]:
    """Shop slugs are lowercase words joined by single hyphens"""
    if not slug or not isinstance(slug, str):
        return False, "Slug must be a non-empty string"

    if not SLUG_PATTERN.match(slug):
        return False, "Slug may only contain lowercase letters, numbers and hyphens"

    return True, None


def validate_vin(vin: str) -> Tuple[bool, Optional[str]]:
    """A VIN is 17 characters and never contains I, O or Q"""
    if not vin or not isinstance(vin, str):
        return False, "VIN must be a non-empty string"

    if not VIN_PATTERN.match(vin.strip().upper()):
        return False, "VIN must be 17 characters (letters I, O and Q are not allowed)"

    return True, None


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Tuple[bool, Optional[str]]:
    """
    Validate string length is within acceptable range

    Args:
        value: String to validate
        min_length: Minimum allowed length
        max_length: Maximum allowed length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, "Value must be a string"

    if len(value) < min_length:
        return False, f"Value too short (minimum {min_length} characters)"

    if len(value) > max_length:
        return False, f"Value too long (maximum {max_length} characters)"

    return True, None


def validate_number_range(value: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """Validate number is within acceptable range"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, "Value must be a number"

    if min_value is not None and value < min_value:
        return False, f"Value too small (minimum {min_value})"

    if max_value is not None and value > max_value:
        return False, f"Value too large (maximum {max_value})"

    return True, None


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input by removing null bytes, trimming and truncating

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace('\x00', '').strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def parse_number(value: Any, field: str, default: Optional[float] = None) -> Optional[float]:
    """
    Coerce a JSON number or numeric string to float

    Raises:
        ValidationError: if the value is present but not numeric
    """
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field)


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 (or otherwise dateutil-readable) timestamp

    Timezone-aware values are converted to naive UTC, matching how the
    models store timestamps.

    Raises:
        ValidationError: if the value cannot be parsed
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (TypeError, ValueError):
            try:
                parsed = date_parser.parse(str(value))
            except (TypeError, ValueError, OverflowError):
                raise ValidationError(f"{field} must be a valid date", field)
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def validate_deal_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """
    Validate deal create/update payloads

    Args:
        data: Request data dictionary
        partial: True for updates, where no field is required

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not partial:
        is_valid, error = validate_required_fields(data, ['businessName'])
        if not is_valid:
            return False, error

    if 'businessName' in data:
        is_valid, error = validate_string_length(data['businessName'] or '', min_length=1, max_length=255)
        if not is_valid:
            return False, f"Invalid businessName: {error}"

    if data.get('contactEmail'):
        is_valid, error = validate_email(data['contactEmail'])
        if not is_valid:
            return False, f"Invalid contactEmail: {error}"

    if data.get('priority') and data['priority'] not in DEAL_PRIORITIES:
        return False, f"priority must be one of: {', '.join(DEAL_PRIORITIES)}"

    if data.get('dealProbability') is not None:
        is_valid, error = validate_number_range(data['dealProbability'], 0, 100)
        if not is_valid:
            return False, f"Invalid dealProbability: {error}"

    for money_field in ('estimatedMonthlyVolume', 'estimatedCommission'):
        if data.get(money_field) is not None:
            is_valid, error = validate_number_range(data[money_field], min_value=0)
            if not is_valid:
                return False, f"Invalid {money_field}: {error}"

    return True, None


def validate_line_item_request(data: Dict[str, Any], partial: bool = False) -> Tuple[bool, Optional[str]]:
    """Validate repair order line item payloads"""
    if not partial:
        is_valid, error = validate_required_fields(data, ['type', 'description'])
        if not is_valid:
            return False, error

    if 'type' in data and data['type'] not in LINE_ITEM_TYPES:
        return False, f"type must be one of: {', '.join(LINE_ITEM_TYPES)}"

    for numeric in ('quantity', 'unitPriceCash', 'unitPriceCard', 'costPrice', 'laborHours', 'discountPercent'):
        if data.get(numeric) is not None:
            try:
                parse_number(data[numeric], numeric)
            except ValidationError as e:
                return False, e.message

    if data.get('quantity') is not None and float(data['quantity']) < 0:
        return False, "quantity cannot be negative"

    if data.get('discountPercent') is not None:
        is_valid, error = validate_number_range(float(data['discountPercent']), 0, 1)
        if not is_valid:
            return False, f"Invalid discountPercent: {error}"

    return True, None


def validate_payment_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate payment payloads (amount and method are required)"""
    if data.get('amount') in (None, '') or not data.get('method'):
        return False, "Amount and method are required"

    if data['method'] not in PAYMENT_METHODS:
        return False, "Invalid payment method"

    try:
        amount = parse_number(data['amount'], 'amount')
    except ValidationError as e:
        return False, e.message

    if amount <= 0:
        return False, "Amount must be greater than zero"

    return True, None

