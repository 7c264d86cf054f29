# brainstorm_bot/generation/communication_filter.py
"""
Communication filter - polishes generated text before it reaches the chat.

Strips robotic openers and closers and echoes of the user's own words. It
swaps casual vocabulary for executive phrasing and adapts wording to the
meeting type and audience. All transforms are deterministic.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional

from ..models import (
    CommunicationQuality,
    CommunicationStyle,
    MeetingType,
    Participant,
    ValidationResult,
    VCRole,
)

logger = logging.getLogger(__name__)


class RoboticPhrase(NamedTuple):
    pattern: re.Pattern[str]
    description: str
    severity: str


def _robotic(pattern: str, description: str, severity: str) -> RoboticPhrase:
    return RoboticPhrase(re.compile(pattern, re.IGNORECASE), description, severity)


ROBOTIC_PATTERNS = [
    _robotic(r"^Based on your question about[^,]*,\s*", "Robotic opening phrase", "high"),
    _robotic(r"^According to your request[^,]*,\s*", "Formal robotic opening", "high"),
    _robotic(r"^As per your inquiry[^,]*,\s*", "Overly formal opening", "high"),
    _robotic(r"^In response to your question about[^,]*,\s*", "Verbose robotic opening", "high"),
    _robotic(r"What do you need\?$", "Generic response to summons", "medium"),
    _robotic(r"^Based on your question,\s*", "Simple robotic opening", "high"),
    _robotic(r"^I understand that you[^.!?]*\.\s*", "Robotic acknowledgment", "medium"),
    _robotic(r"^Thank you for your question about[^.!?]*\.\s*", "Unnecessary gratitude phrase", "medium"),
    _robotic(r"I hope this helps\.?\s*$", "Generic closing phrase", "low"),
    _robotic(r"^Please let me know if you need[^.!?]*\.\s*", "Generic offer for help", "low"),
    _robotic(r"I can provide the following[^.!?]*\.\s*", "Generic information offer", "medium"),
    _robotic(r"Based on your inquiry[^,]*,\s*", "Robotic inquiry response", "high"),
]

UNPROFESSIONAL_PATTERNS = [
    re.compile(r"\b(um|uh|you know)\b", re.IGNORECASE),
    re.compile(r"\b(gonna|wanna|gotta)\b", re.IGNORECASE),
    re.compile(r"\b(yeah|yep|nope)\b", re.IGNORECASE),
    re.compile(r"!{2,}"),
    re.compile(r"\?{2,}"),
    re.compile(r"\b(awesome|cool|sweet)\b", re.IGNORECASE),
]

EXECUTIVE_VOCABULARY = {
    "awesome": "excellent",
    "cool": "interesting",
    "sweet": "favorable",
    "yeah": "yes",
    "yep": "yes",
    "nope": "no",
    "gonna": "going to",
    "wanna": "want to",
    "gotta": "need to",
}

CONFIDENT_REWRITES = [
    (re.compile(r"\bI think\b", re.IGNORECASE), "The analysis indicates"),
    (re.compile(r"\bmaybe\b", re.IGNORECASE), "potentially"),
    (re.compile(r"\bperhaps\b", re.IGNORECASE), "likely"),
    (re.compile(r"\bmight be\b", re.IGNORECASE), "appears to be"),
]

SENTENCE_JOINS = [
    (re.compile(r"\. And "), ", and "),
    (re.compile(r"\. But "), ", but "),
    (re.compile(r"\. However "), ". However, "),
    (re.compile(r"\. Therefore "), ". Therefore, "),
]

# Casual sentence openers and the transition that replaces them.
TRANSITIONS = [
    (re.compile(r"(^|[.!?]\s+)Also,?\s+"), r"\1Additionally, "),
    (re.compile(r"(^|[.!?]\s+)Plus,?\s+"), r"\1Furthermore, "),
    (re.compile(r"(^|[.!?]\s+)On top of that,?\s+"), r"\1Moreover, "),
]

MEETING_REWRITES = {
    MeetingType.INVESTMENT_REVIEW: [
        (re.compile(r"\bcompany\b", re.IGNORECASE), "portfolio company"),
        (re.compile(r"\bmarket\b", re.IGNORECASE), "investment market"),
    ],
    MeetingType.DUE_DILIGENCE: [
        (re.compile(r"\bshows\b", re.IGNORECASE), "indicates"),
        (re.compile(r"\bgood\b", re.IGNORECASE), "favorable"),
        (re.compile(r"\bbad\b", re.IGNORECASE), "concerning"),
    ],
    MeetingType.STRATEGY_SESSION: [
        (re.compile(r"\bproblem\b", re.IGNORECASE), "strategic challenge"),
        (re.compile(r"\bsolution\b", re.IGNORECASE), "strategic approach"),
    ],
    MeetingType.PORTFOLIO_UPDATE: [
        (re.compile(r"\bresults\b", re.IGNORECASE), "performance metrics"),
        (re.compile(r"\bgrowth\b", re.IGNORECASE), "performance growth"),
    ],
}

DIPLOMATIC_REWRITES = [
    (re.compile(r"\bwrong\b", re.IGNORECASE), "suboptimal"),
    (re.compile(r"\bfailed\b", re.IGNORECASE), "did not achieve expected results"),
]
EXECUTIVE_REWRITES = [
    (re.compile(r"\bwe should\b", re.IGNORECASE), "the strategic approach would be to"),
    (re.compile(r"\bwe need\b", re.IGNORECASE), "it would be advisable to"),
]
SUPPORTIVE_REWRITES = [
    (re.compile(r"\bproblems\b", re.IGNORECASE), "opportunities for improvement"),
    (re.compile(r"\bproblem\b", re.IGNORECASE), "opportunity for improvement"),
    (re.compile(r"\bmistakes\b", re.IGNORECASE), "learning opportunities"),
    (re.compile(r"\bmistake\b", re.IGNORECASE), "learning opportunity"),
]
CONCISE_REWRITES = [
    (re.compile(r"\bin order to\b", re.IGNORECASE), "to"),
    (re.compile(r"\bdue to the fact that\b", re.IGNORECASE), "because"),
    (re.compile(r"\bat this point in time\b", re.IGNORECASE), "now"),
]

FORMAL_CLOSING = "In summary, this analysis provides the necessary context for informed decision-making."
DETAILED_CLOSING = "This assessment is based on current market conditions and industry best practices."

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _apply(text: str, rules: Iterable[tuple[re.Pattern[str], str]]) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def tidy(text: str) -> str:
    """Collapse runs of whitespace and drop spaces before closing punctuation."""
    text = re.sub(r"\s{2,}", " ", text)
    return re.sub(r"\s+([.!?,])", r"\1", text).strip()


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _average_sentence_length(sentences: list[str]) -> float:
    if not sentences:
        return 0.0
    return sum(len(s) for s in sentences) / len(sentences)


def key_phrases(text: str) -> list[str]:
    """Three-word windows of ``text`` longer than ten characters."""
    words = text.lower().split()
    phrases = []
    for i in range(len(words) - 2):
        phrase = " ".join(words[i:i + 3])
        if len(phrase) > 10:
            phrases.append(phrase)
    return phrases


class CommunicationFilter:
    """Deterministic clean-up and adaptation of bot replies."""

    # ===== Detection and validation =====

    @staticmethod
    def detect_robotic_phrases(text: str) -> list[RoboticPhrase]:
        return [phrase for phrase in ROBOTIC_PATTERNS if phrase.pattern.search(text)]

    def validate_business_language(self, text: str) -> ValidationResult:
        issues: list[str] = []
        suggestions: list[str] = []
        score = 1.0

        for pattern in UNPROFESSIONAL_PATTERNS:
            matches = [m.group(0) for m in pattern.finditer(text)]
            if matches:
                issues.append(f"Unprofessional language detected: {', '.join(matches)}")
                suggestions.append("Replace casual language with professional alternatives")
                score -= 0.2

        robotic = self.detect_robotic_phrases(text)
        if robotic:
            issues.append(f"Robotic phrases detected: {len(robotic)} instances")
            suggestions.append("Remove robotic opening and closing phrases")
            score -= len(robotic) * 0.15

        sentences = _sentences(text)
        average = _average_sentence_length(sentences)
        if average > 150:
            issues.append("Sentences are too long for executive communication")
            suggestions.append("Break down complex sentences into shorter, clearer statements")
            score -= 0.1
        elif average < 20 and len(sentences) > 1:
            issues.append("Sentences are too short and choppy")
            suggestions.append("Combine related ideas into more substantial sentences")
            score -= 0.1

        if "I think" in text or "maybe" in text or "perhaps" in text:
            issues.append("Language lacks confidence for executive setting")
            suggestions.append("Use more definitive language appropriate for business decisions")
            score -= 0.15

        return ValidationResult(
            is_valid=not issues,
            issues=issues,
            suggestions=suggestions,
            professional_score=round(max(0.0, score), 4),
        )

    def evaluate_communication_quality(self, text: str, user_input: Optional[str] = None) -> CommunicationQuality:
        naturalness = max(0.0, 1 - len(self.detect_robotic_phrases(text)) * 0.4)
        professionalism = self.validate_business_language(text).professional_score
        average = _average_sentence_length(_sentences(text))
        clarity = 1.0 if 20 < average < 150 else 0.8
        engagement = 0.6 if " was " in text or " were " in text else 0.9
        if user_input and self.remove_echoing_patterns(text, user_input) != tidy(text):
            engagement = max(0.0, engagement - 0.2)

        overall = (naturalness + professionalism + clarity + engagement) / 4
        return CommunicationQuality(
            naturalness=round(naturalness, 4),
            professionalism=professionalism,
            clarity=clarity,
            engagement=round(engagement, 4),
            overall_score=round(overall, 4),
        )

    # ===== Clean-up =====

    @staticmethod
    def remove_robotic_phrases(text: str) -> str:
        cleaned = text
        for phrase in ROBOTIC_PATTERNS:
            cleaned = phrase.pattern.sub("", cleaned)
        cleaned = tidy(re.sub(r"^\s*[,.]?\s*", "", cleaned))
        if not cleaned or re.fullmatch(r"[.!?\s]*", cleaned):
            return ""
        return cleaned[0].upper() + cleaned[1:]

    @staticmethod
    def remove_echoing_patterns(text: str, user_input: str) -> str:
        """Drop sentences and phrases that repeat the user's own words back to them."""
        if not user_input or len(user_input) < 10:
            return text

        cleaned = text
        for phrase in key_phrases(user_input):
            escaped = re.escape(phrase)
            cleaned = re.sub(rf"^[^.!?]*{escaped}[^.!?]*[.!?]", "", cleaned, flags=re.IGNORECASE)
            cleaned = re.sub(rf"\b{escaped}\b", "", cleaned, flags=re.IGNORECASE)
        return re.sub(r"^[.!?\s]+", "", tidy(cleaned))

    @staticmethod
    def ensure_professional_tone(text: str) -> str:
        for casual, formal in EXECUTIVE_VOCABULARY.items():
            text = re.sub(rf"\b{casual}\b", formal, text, flags=re.IGNORECASE)
        text = re.sub(r"!{2,}", "!", text)
        text = re.sub(r"\?{2,}", "?", text)
        text = UNPROFESSIONAL_PATTERNS[0].sub("", text)
        return tidy(_apply(text, CONFIDENT_REWRITES))

    def enhance_natural_flow(self, text: str) -> str:
        enhanced = text
        for phrase in self.detect_robotic_phrases(enhanced):
            enhanced = phrase.pattern.sub("", enhanced)
        enhanced = _apply(enhanced, SENTENCE_JOINS)
        enhanced = _apply(enhanced, TRANSITIONS)
        return tidy(enhanced)

    # ===== Adaptation =====

    @staticmethod
    def adapt_to_meeting_context(text: str, meeting_type: MeetingType) -> str:
        return _apply(text, MEETING_REWRITES.get(meeting_type, []))

    @staticmethod
    def adjust_for_participant_roles(text: str, participants: Iterable[Participant]) -> str:
        roles = {p.role for p in participants}
        has_partners = VCRole.PARTNER in roles
        has_entrepreneurs = VCRole.ENTREPRENEUR in roles
        if has_partners and has_entrepreneurs:
            return _apply(text, DIPLOMATIC_REWRITES)
        if has_partners:
            return _apply(text, EXECUTIVE_REWRITES)
        if has_entrepreneurs:
            return _apply(text, SUPPORTIVE_REWRITES)
        return text

    @staticmethod
    def maintain_conversational_flow(text: str, style: CommunicationStyle) -> str:
        if style == CommunicationStyle.FORMAL:
            if "In summary" in text or "To conclude" in text:
                return text
            return f"{text} {FORMAL_CLOSING}"
        if style == CommunicationStyle.CONVERSATIONAL:
            flowing = f"Looking at this situation, {text}"
            return re.sub(r"\.$", ". What are your thoughts on this approach?", flowing)
        if style == CommunicationStyle.BRIEF:
            concise = _apply(text, CONCISE_REWRITES)
            return concise.split(". ")[0].rstrip(".") + "."
        if style == CommunicationStyle.DETAILED:
            return f"{text} {DETAILED_CLOSING}"
        return text

    # ===== Pipeline =====

    def filter_response(
        self,
        text: str,
        user_input: Optional[str] = None,
        meeting_type: Optional[MeetingType] = None,
        participants: Iterable[Participant] = (),
    ) -> str:
        """
        Full clean-up applied to every outgoing reply.

        Falls back to the original text when filtering would leave nothing.
        """
        filtered = self.remove_robotic_phrases(text)
        if user_input:
            filtered = self.remove_echoing_patterns(filtered, user_input)
        filtered = self.enhance_natural_flow(self.ensure_professional_tone(filtered))
        if meeting_type is not None:
            filtered = self.adapt_to_meeting_context(filtered, meeting_type)
        filtered = self.adjust_for_participant_roles(filtered, participants)

        if not filtered.strip():
            logger.debug("Filtering emptied the reply; keeping the original text")
            return text.strip()
        return filtered
