"""Default Key & Example Behavior tables for the 0-4 likert scale."""

from app.instruments.model import BehaviorKeyRow

FREQUENCIES = (
    "0% of the time",
    "~ 20% of the time",
    "~ 50% of the time",
    "~ 70% of the time",
    "~ 90% of the time",
)

SCALE_WORDS = ("Never", "Rarely", "Sometimes", "Usually", "Almost Always")

_DESCRIPTIONS = {
    "infant": (
        "Never notices or responds when other children or caregivers are upset.",
        "Stops to look at another crying infant but rarely responds with concern "
        "before going back to what they were doing.",
        "Sometimes mirrors the emotions of others by smiling back at caregivers or "
        "looking concerned in response to other infants who are crying.",
        "Usually mirrors the emotions of caregivers and responds when other infants "
        "are upset by reaching arms in their direction.",
        "Almost always mirrors the emotions of other children and caregivers and "
        "attempts to comfort them by reaching out their arms or babbling/cooing.",
    ),
    "toddler": (
        "Never expresses their feelings with body language or words or responds to "
        "the feelings of others and stays quiet or expressionless instead.",
        "Rarely expresses their feelings with body language or words and hits or "
        "throws prolonged temper tantrums instead. Rarely responds to other children "
        "who are upset.",
        "Sometimes expresses their feelings with body language or words but throws "
        "temper tantrums and needs help from caregivers to calm down. Sometimes shows "
        "concern if another child cries.",
        "Usually expresses their feelings with body language or words and recovers "
        "from temper tantrums with caregiver support. Notices when others are upset "
        "and tries to comfort them.",
        "Almost always expresses their feelings with body language or words, recovers "
        "quickly from temper tantrums with caregiver support, tries to comfort others, "
        "and actively joins in play.",
    ),
    "preschool": (
        "Never uses words instead of actions (hitting) to express their feelings or "
        "calms down even with caregiver support. Never seems to pick up on or show "
        "concern for other people's feelings.",
        "Rarely uses words instead of actions to express their feelings or calms down "
        "without a lot of caregiver support. Rarely shows concern when friends are "
        "upset without guidance.",
        "Uses words to express their feelings and sometimes shares what caused them. "
        "Sometimes needs a lot of caregiver support to calm down, help others feel "
        "better, and solve social problems.",
        "Usually shares what caused their feelings, manages heightened emotions, "
        "notices what others are feeling, and tries to help them feel better or solve "
        "the problem with caregiver support.",
        "Almost always shares what caused their feelings, calms down with caregiver "
        "guidance, notices what others are feeling and tries to help them feel better "
        "or solve the problem with support.",
    ),
    "k2": (
        "Never talks about what they are feeling or finds strategies (deep breaths, "
        "physical tools) to calm down independently. Never considers other children's "
        "feelings and needs help with solving social problems.",
        "Rarely finds strategies to calm down independently and needs a caregiver to "
        "offer them choices. Rarely considers other children's feelings and needs help "
        "with solving social problems.",
        "Tries to calm down independently but sometimes needs help with finding "
        "strategies. Sometimes considers other children's feelings and compromises to "
        "solve social problems with guidance.",
        "Usually manages heightened emotions successfully using a variety of "
        "strategies. Considers other children's feelings and usually compromises to "
        "solve social problems.",
        "Almost always manages heightened emotions successfully using a variety of "
        "strategies, considers other children's feelings, and works with others to "
        "compromise and solve social problems.",
    ),
}

# Mixed classrooms read the preschool key; unknown bands read toddler.
_BAND_ALIASES = {"mixed": "preschool"}
_DEFAULT_BAND = "toddler"


def behavior_key_for_age_band(age_band: str | None) -> tuple[BehaviorKeyRow, ...]:
    band = _BAND_ALIASES.get(age_band or "", age_band or "")
    descriptions = _DESCRIPTIONS.get(band, _DESCRIPTIONS[_DEFAULT_BAND])
    return tuple(
        BehaviorKeyRow(label=word, frequency=freq, description=text)
        for word, freq, text in zip(SCALE_WORDS, FREQUENCIES, descriptions)
    )
