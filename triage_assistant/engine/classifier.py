"""Message classifier.

Sorts an utterance into one of the three intents by matching it against
per-language vocabularies. Symptom vocabulary outranks scheduling
vocabulary, and an utterance matching neither is a general question.
"""

import logging
from typing import Dict, List

from pydantic import BaseModel, Field

from triage_assistant.engine.errors import ClassificationAmbiguous
from triage_assistant.models.triage import Intent
from triage_assistant.utils.red_flags import detect_red_flags
from triage_assistant.utils.text import find_terms, normalize_text

logger = logging.getLogger(__name__)


SYMPTOM_TERMS: Dict[str, List[str]] = {
    "pt": [
        "dor",
        "dores",
        "doendo",
        "doi",
        "sintoma*",
        "febre",
        "tosse",
        "gripe",
        "gripad*",
        "resfriad*",
        "nausea*",
        "enjoo",
        "enjoad*",
        "vomit*",
        "diarreia",
        "tontura",
        "tonto",
        "tonta",
        "cansaco",
        "fadiga",
        "fraqueza",
        "falta de ar",
        "sangr*",
        "coceira",
        "alergia",
        "manchas",
        "inchac*",
        "inchad*",
        "queimacao",
        "enxaqueca",
        "garganta",
        "machuc*",
        "ferida",
        "desmai*",
        "calafrio*",
        "palpitac*",
        "formigamento",
        "passando mal",
        "sentindo mal",
        "mal estar",
    ],
    "en": [
        "pain",
        "hurt*",
        "ache*",
        "headache",
        "symptom*",
        "fever",
        "cough*",
        "nausea",
        "vomit*",
        "diarrhea",
        "dizz*",
        "fatigue",
        "tired",
        "weakness",
        "rash",
        "itch*",
        "swelling",
        "swollen",
        "bleeding",
        "migraine",
        "sore throat",
        "chills",
        "shortness of breath",
        "feeling sick",
    ],
}

SCHEDULING_TERMS: Dict[str, List[str]] = {
    "pt": [
        "agendar",
        "agendamento",
        "agenda",
        "marcar",
        "remarcar",
        "desmarcar",
        "consulta",
        "consultas",
        "horario*",
        "disponibilidade",
        "vaga",
        "vagas",
        "retorno",
    ],
    "en": [
        "appointment*",
        "schedule",
        "scheduling",
        "reschedule",
        "book",
        "booking",
        "availability",
        "slot",
        "slots",
    ],
}


class ClassificationResult(BaseModel):
    """Intent plus the vocabulary that produced it."""

    intent: Intent
    matched_terms: List[str] = Field(default_factory=list)


def _match(terms_by_language: Dict[str, List[str]], normalized: str) -> List[str]:
    matched = []
    for terms in terms_by_language.values():
        matched.extend(find_terms(normalized, terms))
    return matched


class MessageClassifier:
    """Keyword classifier over the symptom and scheduling vocabularies."""

    def __init__(
        self,
        symptom_terms: Dict[str, List[str]] = None,
        scheduling_terms: Dict[str, List[str]] = None,
    ):
        self.symptom_terms = symptom_terms or SYMPTOM_TERMS
        self.scheduling_terms = scheduling_terms or SCHEDULING_TERMS

    def _resolve(self, text: str) -> ClassificationResult:
        normalized = normalize_text(text)

        symptom_matches = _match(self.symptom_terms, normalized)
        has_red_flags, categories = detect_red_flags(text)
        if has_red_flags:
            symptom_matches.extend(categories)
        if symptom_matches:
            return ClassificationResult(
                intent=Intent.SYMPTOM_REPORT, matched_terms=symptom_matches
            )

        scheduling_matches = _match(self.scheduling_terms, normalized)
        if scheduling_matches:
            return ClassificationResult(
                intent=Intent.SCHEDULING_REQUEST, matched_terms=scheduling_matches
            )

        raise ClassificationAmbiguous(text)

    def explain(self, text: str) -> ClassificationResult:
        """Classify ``text`` and report which terms decided it. Never raises."""
        try:
            return self._resolve(text)
        except ClassificationAmbiguous:
            logger.debug("No intent vocabulary matched; treating as general question")
            return ClassificationResult(intent=Intent.GENERAL_QUESTION)

    def classify(self, text: str) -> Intent:
        return self.explain(text).intent
