"""Bank notification parser - turns SMS/push text into a transaction candidate"""

import json
import logging
import re
import unicodedata
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional

from savemate_engine.domain.models import ParsedNotification
from savemate_engine.utils.money import parse_amount_token

logger = logging.getLogger(__name__)

GENERIC_BANK = "generic"
UNIDENTIFIED_MERCHANT = "Comercio no identificado"
BUNDLED_PATTERNS_PATH = Path(__file__).with_name("bank_patterns.json")

_MERCHANT_END = r"(?=\s+por\b|\s+el\b|\s+con\b|\s*\$|\.(?:\s|$)|,|$)"

# Tried in order after the bank-specific merchant pattern
ALTERNATIVE_MERCHANT_PATTERNS = [
    re.compile(r"compra en\s+(.+?)" + _MERCHANT_END, re.IGNORECASE),
    re.compile(r"pago en\s+(.+?)" + _MERCHANT_END, re.IGNORECASE),
    re.compile(r"transacci[oó]n en\s+(.+?)" + _MERCHANT_END, re.IGNORECASE),
]

DATE_PATTERNS = [
    re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"),
    re.compile(r"\b\d{4}[/-]\d{1,2}[/-]\d{1,2}\b"),
]
CARD_PATTERN = re.compile(r"(?:tarjeta|t\.?\s?cred|t\.?\s?deb)\s*\*{1,2}(\d{4})", re.IGNORECASE)
# Colombian mobile numbers (3xx xxx xxxx)
PHONE_PATTERN = re.compile(r"(?<!\d)(3\d{9})(?!\d)")

EXPENSE_KEYWORDS = ["compra", "pago", "consumo", "débito", "debito", "gasto"]
INCOME_KEYWORDS = ["abono", "crédito", "credito", "depósito", "deposito", "recibiste", "recibido"]

# First match wins; only shapes the generated description
SPECIAL_TYPE_KEYWORDS = [
    ("RECARGA", ("recarga", "top up")),
    ("RETIRO", ("retiro", "withdrawal")),
    ("TRANSFERENCIA", ("transferencia", "transfer")),
    ("DEPOSITO", ("depósito", "deposito", "deposit")),
]

# Substrings looked for when no bank hint is given
BANK_SIGNATURES = [
    ("bancolombia", "bancolombia"),
    ("daviplata", "daviplata"),
    ("nequi", "nequi"),
    ("bbva", "bbva"),
    ("banco de bogota", "bancodebogota"),
    ("aval", "aval"),
]


def normalize_bank_key(bank_name: Optional[str]) -> str:
    """'Banco de Bogotá' -> 'bancodebogota'"""
    if not bank_name:
        return ""
    decomposed = unicodedata.normalize("NFKD", bank_name.strip().lower())
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]", "", ascii_only)


class BankPatternTable:
    """
    Lookup table of bank key -> compiled regex set.

    The table is loaded from JSON so new banks are added as data. A
    "generic" entry must always be present; keys missing from a bank entry
    fall back to the generic ones.
    """

    def __init__(self, raw: Dict[str, Dict[str, str]]):
        if GENERIC_BANK not in raw:
            raise ValueError("bank pattern table must define a 'generic' entry")

        generic = raw[GENERIC_BANK]
        self._patterns: Dict[str, Dict[str, re.Pattern]] = {}
        for bank, entries in raw.items():
            merged = {**generic, **entries}
            self._patterns[normalize_bank_key(bank)] = {
                name: re.compile(pattern, re.IGNORECASE) for name, pattern in merged.items()
            }

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "BankPatternTable":
        source = Path(path) if path else BUNDLED_PATTERNS_PATH
        return cls(json.loads(source.read_text(encoding="utf-8")))

    @property
    def banks(self) -> Iterable[str]:
        return self._patterns.keys()

    def resolve(self, bank_name: Optional[str]) -> str:
        """Pick a bank key: exact match, then partial match, then generic"""
        key = normalize_bank_key(bank_name)
        if not key:
            return GENERIC_BANK

        if key in self._patterns:
            return key

        for bank in self._patterns:
            if bank != GENERIC_BANK and (bank in key or key in bank):
                return bank

        return GENERIC_BANK

    def patterns_for(self, bank_key: str) -> Dict[str, re.Pattern]:
        return self._patterns.get(bank_key, self._patterns[GENERIC_BANK])


@lru_cache(maxsize=None)
def default_pattern_table(path: Optional[str] = None) -> BankPatternTable:
    return BankPatternTable.from_file(path)


def _first_group(match: Optional[re.Match]) -> Optional[str]:
    if match is None:
        return None
    for group in match.groups():
        if group is not None:
            return group.strip()
    return None


def detect_bank(text: Optional[str]) -> str:
    """Guess the issuing bank from the message body"""
    if text is None:
        return "unknown"

    lowered = text.lower()
    folded = normalize_bank_key(text)  # accent-free, no spaces
    for signature, key in BANK_SIGNATURES:
        if signature in lowered or normalize_bank_key(signature) in folded:
            return key
    return GENERIC_BANK


def is_valid_bank_notification(text: Optional[str]) -> bool:
    """Cheap pre-filter: does the text look like a financial notification at all?"""
    if text is None or not text.strip():
        return False

    lowered = text.lower()
    has_currency = "$" in lowered or "pesos" in lowered or "cop" in lowered
    has_keywords = any(
        keyword in lowered for keyword in ("compra", "pago", "transacción", "banco", "tarjeta", "cuenta")
    )
    return has_currency or has_keywords


def extract_amount(text: str, patterns: Dict[str, re.Pattern]) -> Optional[Decimal]:
    for match in patterns["amount"].finditer(text):
        token = _first_group(match)
        if token is None:
            continue
        amount = parse_amount_token(token)
        if amount is not None:
            return amount
        logger.warning("Could not parse amount token", extra={"token": token})
    return None


def extract_merchant(text: str, patterns: Dict[str, re.Pattern]) -> str:
    merchant = _first_group(patterns["merchant"].search(text))
    if merchant:
        return merchant

    for pattern in ALTERNATIVE_MERCHANT_PATTERNS:
        merchant = _first_group(pattern.search(text))
        if merchant:
            return merchant

    return UNIDENTIFIED_MERCHANT


def extract_reference(text: str, patterns: Dict[str, re.Pattern]) -> Optional[str]:
    return _first_group(patterns["reference"].search(text))


def extract_date_string(text: str) -> Optional[str]:
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def extract_card_last4(text: str) -> Optional[str]:
    match = CARD_PATTERN.search(text)
    return match.group(1) if match else None


def extract_phone_number(text: str) -> Optional[str]:
    match = PHONE_PATTERN.search(text)
    return match.group(1) if match else None


def detect_special_type(text: str) -> Optional[str]:
    lowered = text.lower()
    for special_type, keywords in SPECIAL_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return special_type
    return None


def determine_transaction_type(text: str, amount: Optional[Decimal]) -> str:
    """
    Classify direction from keywords.

    Expense keywords win over income keywords; with an amount but no
    keyword the message is treated as an expense. Without an amount the
    direction is UNKNOWN.
    """
    if amount is None:
        return "UNKNOWN"

    lowered = text.lower()
    if any(keyword in lowered for keyword in EXPENSE_KEYWORDS):
        return "EXPENSE"
    if any(keyword in lowered for keyword in INCOME_KEYWORDS):
        return "INCOME"
    return "EXPENSE"


def generate_description(parsed: ParsedNotification) -> str:
    if parsed.special_type:
        description = parsed.special_type
    elif parsed.merchant and parsed.merchant != UNIDENTIFIED_MERCHANT:
        description = f"Compra en {parsed.merchant}"
    else:
        description = "Transacción bancaria"

    if parsed.amount is not None:
        description += f" por ${parsed.amount:.2f}"
    return description


def parse_notification(
    text: Optional[str],
    bank_name: Optional[str] = None,
    table: Optional[BankPatternTable] = None,
) -> ParsedNotification:
    """
    Parse a raw bank notification into a structured candidate.

    Never raises for bad input: failures come back with success=False and
    an error message.

    Args:
        text: Notification body (SMS or push)
        bank_name: Optional issuing-bank hint used to select a pattern set
        table: Pattern table; defaults to the bundled one

    Returns:
        ParsedNotification with extracted fields and a generated description
    """
    result = ParsedNotification(original_text=text, bank_name=bank_name)

    if text is None or not text.strip():
        result.error = "Texto de notificación vacío"
        return result

    table = table or default_pattern_table()
    bank_key = table.resolve(bank_name) if bank_name else table.resolve(detect_bank(text))
    patterns = table.patterns_for(bank_key)
    result.bank_key = bank_key

    result.amount = extract_amount(text, patterns)
    result.transaction_type = determine_transaction_type(text, result.amount)
    if result.amount is None:
        result.error = "No se encontró un monto en la notificación"
        logger.info("Notification without amount", extra={"bank_key": bank_key})
        return result

    result.merchant = extract_merchant(text, patterns)
    result.reference = extract_reference(text, patterns)
    result.date_string = extract_date_string(text)
    result.card_last4 = extract_card_last4(text)
    result.phone_number = extract_phone_number(text)
    result.special_type = detect_special_type(text)
    result.description = generate_description(result)
    result.success = True

    logger.debug(
        "Notification parsed",
        extra={"bank_key": bank_key, "merchant": result.merchant, "transaction_type": result.transaction_type},
    )
    return result
