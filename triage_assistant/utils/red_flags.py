"""Red flag detection for emergency symptoms.

Patterns are written against normalised text (lowercase, no accents), so
"não consigo respirar" is matched by ``nao consigo respirar``.
"""

import re
from typing import Dict, List, Tuple

from triage_assistant.utils.text import find_terms_longest_first, normalize_text


# Emergency symptom patterns by category (Portuguese first, then English)
RED_FLAG_PATTERNS: Dict[str, List[str]] = {
    "cardiac_emergency": [
        r"dor (forte |intensa |muito forte )?no peito",
        r"dor no torax",
        r"aperto no peito",
        r"pressao no peito",
        r"dor.*irradia.*(braco|mandibula|queixo)",
        r"infarto",
        r"ataque cardiaco",
        r"chest pain",
        r"crushing.*chest",
        r"pressure.*chest",
        r"chest.*tight",
        r"heart attack",
    ],
    "respiratory_emergency": [
        r"falta de ar",
        r"dificuldade (para|de|pra|em) respirar",
        r"nao consigo respirar",
        r"sem conseguir respirar",
        r"sufocando",
        r"labios (roxos|azulados)",
        r"can'?t breathe",
        r"difficulty breathing",
        r"shortness of breath",
        r"gasping for air",
        r"choking",
        r"lips.*blue",
    ],
    "neurological_emergency": [
        r"desmai",
        r"perd\w* (a|da) consciencia",
        r"inconsciente",
        r"desacordad",
        r"convuls",
        r"boca torta",
        r"fala enrolada",
        r"pior dor de cabeca da (minha )?vida",
        r"loss of consciousness",
        r"passed out",
        r"fainted",
        r"unconscious",
        r"seizure",
        r"slurred speech",
        r"face.*droop",
        r"worst headache.*life",
    ],
    "psychiatric_emergency": [
        r"quero morrer",
        r"me matar",
        r"suicid",
        r"tirar (a )?minha (propria )?vida",
        r"want to (die|kill myself)",
        r"better off dead",
    ],
    "trauma_emergency": [
        r"sangramento (intenso|forte|que nao para)",
        r"sangrando muito",
        r"hemorragia",
        r"fratura exposta",
        r"heavy bleeding",
        r"bleeding.*won'?t stop",
        r"compound fracture",
    ],
    "abdominal_emergency": [
        r"vomit\w* (com )?sangue",
        r"sangue no vomito",
        r"fezes (pretas|com sangue)",
        r"vomiting blood",
        r"blood in.*(vomit|stool)",
    ],
    "allergic_emergency": [
        r"anafila",
        r"garganta fechando",
        r"lingua inchad",
        r"inchaco (na|no) (rosto|garganta|lingua)",
        r"anaphylaxis",
        r"throat.*closing",
        r"tongue.*swelling",
    ],
}


# Moderate-severity signals and their weights
MODERATE_SIGNALS: Dict[str, float] = {
    "febre alta": 2,
    "high fever": 2,
    "insuportavel": 2,
    "unbearable": 2,
    "muito forte": 2,
    "severe": 2,
    "rigidez na nuca": 2,
    "stiff neck": 2,
    "sangr*": 2,
    "sangue": 2,
    "blood*": 2,
    "bleeding": 2,
    "confus*": 2,
    "febre": 1,
    "fever": 1,
    "forte": 1,
    "intensa": 1,
    "vomit*": 1,
    "diarreia": 1,
    "diarrhea": 1,
    "tontura": 1,
    "dizz*": 1,
    "calafrio*": 1,
    "chills": 1,
    "inchac*": 1,
    "swelling": 1,
    "desidrat*": 1,
    "dehydrat*": 1,
    "piora*": 1,
    "worse*": 1,
}


def detect_red_flags(text: str) -> Tuple[bool, List[str]]:
    """
    Detect emergency red flags in user input.

    Args:
        text: User message text

    Returns:
        Tuple of (has_red_flags, list_of_detected_categories)
    """
    normalized = normalize_text(text)
    detected_flags = []

    for category, patterns in RED_FLAG_PATTERNS.items():
        for pattern in patterns:
            if re.search(pattern, normalized):
                detected_flags.append(category)
                break  # Only add category once

    return len(detected_flags) > 0, detected_flags


def find_moderate_signals(text: str) -> List[str]:
    """Return the moderate-severity signal terms present in ``text``."""
    return find_terms_longest_first(normalize_text(text), MODERATE_SIGNALS)
