"""Brazilian document and phone validation helpers."""
import re
import unicodedata
from typing import Optional

_NON_DIGITS = re.compile(r"\D")

CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def only_digits(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def _all_same(digits: str) -> bool:
    return len(set(digits)) == 1


def validate_cpf(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 11 or _all_same(digits):
        return False

    for size in (9, 10):
        total = sum(int(digits[i]) * (size + 1 - i) for i in range(size))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(digits[size]):
            return False
    return True


def validate_cnpj(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 14 or _all_same(digits):
        return False

    for weights in (CNPJ_WEIGHTS_1, CNPJ_WEIGHTS_2):
        size = len(weights)
        total = sum(int(digits[i]) * weights[i] for i in range(size))
        remainder = total % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != int(digits[size]):
            return False
    return True


def document_type(value: str) -> Optional[str]:
    """Return "cpf", "cnpj" or None based on digit count."""
    digits = only_digits(value)
    if len(digits) == 11:
        return "cpf"
    if len(digits) == 14:
        return "cnpj"
    return None


def validate_cpf_cnpj(value: str) -> bool:
    kind = document_type(value)
    if kind == "cpf":
        return validate_cpf(value)
    if kind == "cnpj":
        return validate_cnpj(value)
    return False


def validate_phone(value: str) -> bool:
    """
    Brazilian phone with area code.

    10 digits for landlines, 11 digits for mobiles (must start with 9
    after the area code). Area codes range 11-99.
    """
    digits = only_digits(value)
    if len(digits) not in (10, 11):
        return False
    if int(digits[:2]) < 11:
        return False
    if len(digits) == 11 and digits[2] != "9":
        return False
    return True


def format_cpf_cnpj(value: str) -> str:
    digits = only_digits(value)[:14]
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return digits


def format_phone(value: str) -> str:
    digits = only_digits(value)[:11]
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return digits


def format_order_number(order_number) -> str:
    """Zero-padded display number, e.g. 42 -> "00042"."""
    if not order_number:
        return ""
    try:
        return str(int(order_number)).zfill(5)
    except (TypeError, ValueError):
        return str(order_number)


def slugify(value: str) -> str:
    """ASCII URL slug: "Cartão de Visita" -> "cartao-de-visita"."""
    ascii_value = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r'[^a-z0-9]+', '-', ascii_value.lower()).strip('-')
