"""Canned replies for buyer messages, chosen by keyword."""

from typing import Iterable, Optional, Tuple

TEMPLATES = {
    "shipping": (
        "Thank you for your message about shipping. Your order will be shipped within 2-3 business days. "
        "Once shipped, you will receive a tracking number via eBay. Please allow 7-14 days for delivery "
        "depending on your location."
    ),
    "order_status": (
        "Thank you for inquiring about your order status. We've received your order and it's currently being "
        "processed. If you have any specific questions about your order, please provide your order number and "
        "we'll be happy to provide more details."
    ),
    "product_details": (
        "Thank you for your interest in our product. The item description includes all available information "
        "about the product specifications, dimensions, and features. If you have a specific question that isn't "
        "covered in the description, please let us know and we'll be happy to help."
    ),
    "returns": (
        "We accept returns within 30 days of receiving your item. To initiate a return, please go to your eBay "
        "purchase history and select \"Return this item\". If you need any assistance with the return process, "
        "please let us know."
    ),
    "general": (
        "Thank you for your message. We appreciate your interest in our products. Our customer service team will "
        "review your inquiry and get back to you within 24 hours if needed. Please let us know if you have any "
        "other questions!"
    ),
}

# Checked in order; first hit wins
KEYWORD_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("shipping", ("ship", "delivery", "tracking")),
    ("order_status", ("order", "status", "purchase")),
    ("product_details", ("spec", "dimension", "feature", "detail", "information")),
    ("returns", ("return",)),
)


def find_escalation_keyword(text: Optional[str], keywords: Iterable[str]) -> Optional[str]:
    lowered = (text or "").lower()
    for keyword in keywords:
        if keyword and keyword.lower() in lowered:
            return keyword
    return None


def choose_template(text: Optional[str]) -> str:
    lowered = (text or "").lower()
    for name, words in KEYWORD_RULES:
        if any(word in lowered for word in words):
            return name
    return "general"


def generate_response(text: Optional[str], buyer: Optional[str] = None) -> str:
    reply = TEMPLATES[choose_template(text)]
    if buyer:
        return f"Hi {buyer},\n\n{reply}"
    return reply
