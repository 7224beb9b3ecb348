"""
Display labels for domain enums.

Enums carry only their tag.  Presentation text lives here, keyed by enum
member, in English ("en") and Korean ("ko").  Module packages register
labels for their own enums with ``register_labels`` at import time.
"""

from enum import Enum

from ledger_kernel.models.account import AccountCategory, AccountType, NormalBalance
from ledger_kernel.models.transaction import (
    DocumentType,
    TaxType,
    TransactionStatus,
    TransactionType,
)

SUPPORTED_LOCALES = ("en", "ko")

# Keyed by (enum class, value): str-valued members of different enums
# compare and hash equal when their values match.
_LABELS: dict[tuple[type, str], dict[str, str]] = {}


def register_labels(table: dict[Enum, tuple[str, str]]) -> None:
    """
    Register (english, korean) labels for enum members.

    Register one enum class per call: members of different str enums that
    share a value collide as dict keys.
    """
    for member, (en, ko) in table.items():
        _LABELS[(type(member), member.value)] = {"en": en, "ko": ko}


def display_label(member: Enum, locale: str = "en") -> str:
    """
    Label for ``member`` in ``locale``.

    Raises:
        ValueError: unsupported locale.
        KeyError: no label registered for the member.
    """
    if locale not in SUPPORTED_LOCALES:
        raise ValueError(f"Unsupported locale {locale!r}; expected one of {SUPPORTED_LOCALES}")
    return _LABELS[(type(member), member.value)][locale]


register_labels({
    AccountType.ASSET: ("Asset", "자산"),
    AccountType.LIABILITY: ("Liability", "부채"),
    AccountType.EQUITY: ("Equity", "자본"),
    AccountType.REVENUE: ("Revenue", "수익"),
    AccountType.EXPENSE: ("Expense", "비용"),
})
register_labels({
    AccountCategory.CURRENT_ASSET: ("Current assets", "유동자산"),
    AccountCategory.FIXED_ASSET: ("Fixed assets", "고정자산"),
    AccountCategory.CURRENT_LIABILITY: ("Current liabilities", "유동부채"),
    AccountCategory.LONG_TERM_LIABILITY: ("Long-term liabilities", "장기부채"),
    AccountCategory.CAPITAL: ("Capital", "자본"),
    AccountCategory.OPERATING_REVENUE: ("Operating revenue", "영업수익"),
    AccountCategory.NON_OPERATING_REVENUE: ("Non-operating revenue", "영업외수익"),
    AccountCategory.OPERATING_EXPENSE: ("Operating expenses", "영업비용"),
    AccountCategory.NON_OPERATING_EXPENSE: ("Non-operating expenses", "영업외비용"),
})
register_labels({
    NormalBalance.DEBIT: ("Debit", "차변"),
    NormalBalance.CREDIT: ("Credit", "대변"),
    NormalBalance.BOTH: ("Debit/Credit", "차대변"),
})
register_labels({
    TransactionType.JOURNAL: ("General journal", "일반분개"),
    TransactionType.SALES: ("Sales", "매출"),
    TransactionType.PURCHASE: ("Purchase", "매입"),
    TransactionType.CASH_RECEIPT: ("Cash receipt", "현금수입"),
    TransactionType.CASH_PAYMENT: ("Cash payment", "현금지출"),
    TransactionType.BANK_RECEIPT: ("Bank receipt", "예금수입"),
    TransactionType.BANK_PAYMENT: ("Bank payment", "예금지출"),
    TransactionType.ADJUSTMENT: ("Adjusting entry", "수정분개"),
    TransactionType.CLOSING: ("Closing entry", "결산분개"),
})
register_labels({
    TransactionStatus.DRAFT: ("Draft", "임시저장"),
    TransactionStatus.PENDING: ("Pending approval", "승인대기"),
    TransactionStatus.APPROVED: ("Approved", "승인완료"),
    TransactionStatus.POSTED: ("Posted", "전기완료"),
    TransactionStatus.CANCELLED: ("Cancelled", "취소"),
})
register_labels({
    TaxType.VAT_10: ("VAT 10%", "부가세 10%"),
    TaxType.VAT_0: ("VAT 0%", "부가세 0%"),
    TaxType.TAX_FREE: ("Tax free", "면세"),
    TaxType.WITHHOLDING: ("Withholding", "원천세"),
})
register_labels({
    DocumentType.TAX_INVOICE: ("Tax invoice", "세금계산서"),
    DocumentType.CASH_RECEIPT: ("Cash receipt", "현금영수증"),
    DocumentType.CREDIT_CARD: ("Credit card", "신용카드"),
    DocumentType.BANK_TRANSFER: ("Bank transfer", "계좌이체"),
    DocumentType.PROMISSORY_NOTE: ("Promissory note", "약속어음"),
    DocumentType.RECEIPT: ("Receipt", "영수증"),
    DocumentType.CONTRACT: ("Contract", "계약서"),
    DocumentType.OTHER: ("Other", "기타"),
})
