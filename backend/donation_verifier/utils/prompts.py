"""Default prompt and output schema for receipt extraction.

Keeping the prompt and the schema together makes it easier to iterate
on their content and keep them consistent.  The schema is described
once as an ordered field table and rendered in the dialect each AI
provider expects: JSON Schema for OpenAI structured outputs and the
OpenAPI subset used by Gemini's ``response_schema``.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Any, Dict, List, Tuple


# (name, type, description) in the order the model should emit them
RECEIPT_FIELDS: List[Tuple[str, str, str]] = [
    ("transactionId", "string", "Transaction reference number or ID"),
    ("amount", "number", "Transfer amount as a number"),
    ("currency", "string", "Currency code (e.g., LKR, USD)"),
    ("senderName", "string", "Sender's name"),
    ("senderAccount", "string", "Sender's account number"),
    ("recipientName", "string", "Recipient's name"),
    ("recipientAccount", "string", "Recipient's account number"),
    ("bankName", "string", "Bank name"),
    ("bankBranch", "string", "Bank branch"),
    ("transactionDate", "string", "Transaction date in YYYY-MM-DD format"),
    ("transactionTime", "string", "Transaction time"),
    ("description", "string", "Payment description or reference"),
    ("status", "string", "Transaction status (completed, pending, etc.)"),
]

REQUIRED_RECEIPT_FIELDS: List[str] = ["amount", "recipientName", "recipientAccount", "bankName"]


def get_default_extraction_prompt() -> str:
    """Return the instructions sent with every receipt image."""
    return dedent(
        """
        Analyze this bank transfer payslip/receipt image and extract all visible information.
        Pay special attention to:
        - Transaction amount and currency
        - Recipient details (name and account number)
        - Bank information (name and branch)
        - Transaction date and reference
        - Any other relevant payment details

        If any information is not clearly visible, return null for that field.
        Make sure the amount is extracted as a number without any currency symbols.
        """
    ).strip()


def get_receipt_json_schema() -> Dict[str, Any]:
    """JSON Schema for OpenAI ``response_format`` (optional fields nullable)."""
    properties: Dict[str, Any] = {}
    for name, type_, description in RECEIPT_FIELDS:
        json_type: Any = type_ if name in REQUIRED_RECEIPT_FIELDS else [type_, "null"]
        properties[name] = {"type": json_type, "description": description}
    return {
        "type": "object",
        "properties": properties,
        "required": list(REQUIRED_RECEIPT_FIELDS),
        "additionalProperties": False,
    }


def get_receipt_gemini_schema() -> Dict[str, Any]:
    """Gemini ``response_schema`` with an explicit property ordering."""
    properties: Dict[str, Any] = {}
    for name, type_, description in RECEIPT_FIELDS:
        properties[name] = {
            "type": type_.upper(),
            "description": description,
            "nullable": name not in REQUIRED_RECEIPT_FIELDS,
        }
    return {
        "type": "OBJECT",
        "properties": properties,
        "property_ordering": [name for name, _, _ in RECEIPT_FIELDS],
        "required": list(REQUIRED_RECEIPT_FIELDS),
    }
