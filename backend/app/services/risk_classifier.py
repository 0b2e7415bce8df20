"""
Risk Classifier.

Best-effort trigger for automatic escalation: a case-insensitive substring
match of the latest owner-authored message against a fixed phrase list.
It is a cheap heuristic that decides when staff should look, not a clinical
judgment, and it will miss anything phrased differently.
"""
from typing import Optional

RISK_NONE = 0
RISK_HIGH = 2

# Scores at or above this escalate an outlet session to admin automatically
ESCALATION_THRESHOLD = RISK_HIGH

RISK_PHRASES = (
    "suicide",
    "kill myself",
    "self harm",
    "self-harm",
    "hurt myself",
    "end my life",
    "i want to die",
)


def classify_risk(text: Optional[str]) -> int:
    """Return RISK_HIGH if the text contains any risk phrase, else RISK_NONE."""
    lowered = (text or "").strip().lower()
    if not lowered:
        return RISK_NONE
    if any(phrase in lowered for phrase in RISK_PHRASES):
        return RISK_HIGH
    return RISK_NONE


def should_escalate(risk_level: int) -> bool:
    return risk_level >= ESCALATION_THRESHOLD
