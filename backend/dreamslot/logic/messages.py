"""Reveal, retry and milestone texts."""
from dreamslot.logic.rng import RNGBase


GENERIC_LOSE_MESSAGES: tuple[str, ...] = (
    "Try again? Or... just close your eyes, that works even better.",
)

RETRY_BUTTON_TEXTS: tuple[str, ...] = (
    "One more spin, then bed",
    "Okay, okay, one more pull",
    "Just one last time, really",
    "One more and I'll sleep",
    "Can't sleep yet, must pull",
    "One more, forget about sleep",
)

GALLERY_BUTTON_TEXT = "Can't wait to see the whole collection!"

# Keyed by exact pull count
MILESTONE_MESSAGES: dict[int, str] = {
    50: "How is it going? Having fun?",
    100: "How many secret buttons have you unlocked so far?",
    150: "Still haven't found the hidden item? A few more pulls and you'll see!",
    200: "200 pulls already. Persistence mode activated!",
    250: "Don't stop now, the next one might be the hidden item!",
    300: "Unbelievable, 300 pulls! Keep going and I'll tell you how close the hidden item is!",
    350: "Trust me, 50 more and I'll really tell you.",
    400: "I think... within the next 50 pulls the hidden item will show up. I promise!",
    450: "Almost there! The full set of dreams is not far away!",
    500: "If you really made it to 500 pulls, the express lane is now open!",
    550: "You've collected everything, why are you still pulling? No more surprises!",
    600: "Incredible willpower! I didn't design anything past this, please rest!",
}

FLAVOR_FALLBACK_NO_KEY = "Starlight falls on your pillow. Good night, sweet dreams."
FLAVOR_FALLBACK_ERROR = "It's late, even the stars are asleep. Time for you to rest too."
FLAVOR_FALLBACK_EMPTY = "Good night."


def milestone_message(pull_count: int) -> str | None:
    """Return the milestone text for an exact pull count."""
    return MILESTONE_MESSAGES.get(pull_count)


def lose_message(rng: RNGBase) -> str:
    return rng.choice(GENERIC_LOSE_MESSAGES)


def retry_text(rng: RNGBase) -> str:
    return rng.choice(RETRY_BUTTON_TEXTS)
