"""
VIN decoding through the NHTSA vPIC ``decodevin`` endpoint.
"""

import logging
from typing import Any, Dict, Optional

import requests

from validators import ValidationError, validate_vin

logger = logging.getLogger(__name__)

DEFAULT_VPIC_URL = 'https://vpic.nhtsa.dot.gov/api/vehicles/decodevin/{vin}?format=json'
REQUEST_TIMEOUT = 15

# vPIC VariableId -> response field
VPIC_VARIABLES = {
    29: 'year',
    26: 'make',
    28: 'model',
    38: 'trim',
    13: 'engineSize',
    37: 'transmission',
    5: 'bodyClass',
    15: 'driveType',
    24: 'fuelType',
}


class VinDecodeError(Exception):
    """vPIC was unreachable or answered with an error."""


def parse_vpic_results(results) -> Dict[str, Any]:
    """Map vPIC ``Results`` rows to vehicle fields."""
    decoded: Dict[str, Any] = {field: None for field in VPIC_VARIABLES.values()}
    for row in results or []:
        field = VPIC_VARIABLES.get(row.get('VariableId'))
        value = row.get('Value')
        if not field or value in (None, '', 'Not Applicable'):
            continue
        decoded[field] = value

    if decoded['year']:
        try:
            decoded['year'] = int(decoded['year'])
        except (TypeError, ValueError):
            decoded['year'] = None
    if decoded['transmission']:
        decoded['transmission'] = 'manual' if 'manual' in decoded['transmission'].lower() else 'automatic'
    return decoded


def decode_vin(vin: str, url_template: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode a VIN.

    Raises:
        ValidationError: malformed VIN
        VinDecodeError: the lookup failed
    """
    vin = (vin or '').strip().upper()
    is_valid, error = validate_vin(vin)
    if not is_valid:
        raise ValidationError(error, 'vin')

    url = (url_template or DEFAULT_VPIC_URL).format(vin=vin)
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"VIN decode failed for {vin}: {e}")
        raise VinDecodeError(f"VIN decode failed: {e}")

    decoded = parse_vpic_results(payload.get('Results'))
    decoded['vin'] = vin
    logger.info(f"Decoded VIN {vin}: {decoded.get('year')} {decoded.get('make')} {decoded.get('model')}")
    return decoded
