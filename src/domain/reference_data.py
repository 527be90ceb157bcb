from __future__ import annotations

from src.infrastructure.db.models import CefrLevel, Skill

# Five writing criteria, each scored 0-20 so the total lands on a 0-100 scale
WRITING_CRITERIA: tuple[str, ...] = (
    "Coherence and Clarity",
    "Organization and Structure",
    "Focus and Content Development",
    "Vocabulary and Word Choice",
    "Grammar and Conventions",
)
WRITING_CRITERION_MAX = 20.0

WRITING_WORD_TARGETS: dict[CefrLevel, int] = {
    CefrLevel.A1: 50,
    CefrLevel.A2: 80,
    CefrLevel.B1: 150,
    CefrLevel.B2: 200,
    CefrLevel.C1: 300,
    CefrLevel.C2: 400,
}

CEFR_DESCRIPTORS: dict[CefrLevel, str] = {
    CefrLevel.A1: "Can write simple phrases and sentences about themselves and imaginary people.",
    CefrLevel.A2: (
        "Can write a series of simple phrases and sentences linked with simple connectors."
    ),
    CefrLevel.B1: "Can write straightforward connected texts on familiar subjects.",
    CefrLevel.B2: "Can write clear, detailed texts on various subjects related to their interests.",
    CefrLevel.C1: "Can write clear, well-structured texts on complex subjects.",
    CefrLevel.C2: "Can write complex texts with clarity and fluency in an appropriate style.",
}

# Answer-set fields accepted for the objective skills
ANSWER_SET_FIELDS: dict[Skill, tuple[str, ...]] = {
    Skill.READING: (
        "multiple_choice_answers",
        "true_false_answers",
        "fill_blanks_answers",
        "categorization_answers",
    ),
    Skill.LISTENING: (
        "answers",
        "mcq_answers",
        "fill_blanks_answers",
        "true_false_answers",
        "phrase_matching_answers",
    ),
}

MIN_TRANSCRIPTION_LENGTH = 10


def score_band_feedback(score: float) -> str:
    """Short feedback line for an objective-test percentage."""
    if score >= 90:
        return "Excellent result. You are ready to try the next level."
    if score >= 75:
        return "Good result. Review the questions you missed to consolidate this level."
    if score >= 50:
        return "Fair result. Keep practising at this level before moving on."
    return (
        "This level is still challenging. "
        "Focus on the fundamentals and retry after the cooldown."
    )
