"""
Cultural adaptation of surface text, shared by every activity service.

Rewrites are driven purely by the configuration's cultural tags:

    hindi_language_support / bilingual_approach
        English greetings get a Hindi gloss: "Hello" -> "Hello (Namaste)"
    family_aware_approach
        decision phrasing includes the family
"""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

TAG_INDIAN_CONTEXT = "indian_cultural_context"
TAG_HINDI = "hindi_language_support"
TAG_BILINGUAL = "bilingual_approach"
TAG_FAMILY = "family_aware_approach"
TAG_HIERARCHY = "respect_hierarchy"

HINDI_GLOSSES: Dict[str, str] = {
    "Hello": "Namaste",
    "How are you": "Aap kaise hain",
    "Thank you": "Dhanyawad",
    "Good": "Accha",
    "Feel better": "Behtar mehsoos kariye",
}

FAMILY_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("your decision", "your family's decision"),
    ("Your decision", "Your family's decision"),
    ("you should", "you and your family might consider"),
    ("You should", "You and your family might consider"),
)


class CulturalAdapter:
    """Stateless text rewriter; one instance can serve every session."""

    def adapt(self, text: str, tags: Sequence[str]) -> str:
        adapted = text
        if TAG_HINDI in tags or TAG_BILINGUAL in tags:
            adapted = self.add_hindi_glosses(adapted)
        if TAG_FAMILY in tags:
            adapted = self.family_aware(adapted)
        return adapted

    @staticmethod
    def add_hindi_glosses(text: str) -> str:
        for english, hindi in HINDI_GLOSSES.items():
            pattern = re.compile(
                rf"\b{re.escape(english)}\b(?! \({re.escape(hindi)}\))", re.IGNORECASE
            )
            text = pattern.sub(lambda m, h=hindi: f"{m.group(0)} ({h})", text)
        return text

    @staticmethod
    def family_aware(text: str) -> str:
        for original, replacement in FAMILY_PHRASES:
            text = text.replace(original, replacement)
        return text

    @staticmethod
    def applied_tags(tags: Sequence[str]) -> List[str]:
        """Tags that change text or tone, for reporting on a response."""
        known = (TAG_INDIAN_CONTEXT, TAG_HINDI, TAG_BILINGUAL, TAG_FAMILY, TAG_HIERARCHY)
        return [t for t in tags if t in known]

    @staticmethod
    def prompt_notes(tags: Sequence[str]) -> str:
        notes = []
        if TAG_INDIAN_CONTEXT in tags:
            notes.append("Indian cultural context")
        if TAG_HINDI in tags:
            notes.append("use simple Hindi or Hinglish")
        elif TAG_BILINGUAL in tags:
            notes.append("mix English with common Hindi words")
        if TAG_FAMILY in tags:
            notes.append("acknowledge family involvement in decisions")
        if TAG_HIERARCHY in tags:
            notes.append("be respectful of elders and hierarchy")
        return ", ".join(notes) if notes else "none"
