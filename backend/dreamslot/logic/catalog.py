"""Static item catalog: 25 standard collectibles and one hidden item."""
from dreamslot.logic.models import Item


CATALOG: tuple[Item, ...] = (
    Item(id="sheep", glyph="🐑", label="Counting Sheep",
         message="One sheep, two sheep... every worry has wandered off."),
    Item(id="milk", glyph="🥛", label="Warm Milk",
         message="A warm cup before bed, and tonight you sleep like a champion."),
    Item(id="moon", glyph="🌕", label="Full Moon",
         message="A perfectly round moon. A perfectly good night's sleep."),
    Item(id="bear", glyph="🧸", label="Cuddle Bear",
         message="Every plush on the pillow is keeping watch tonight."),
    Item(id="bath", glyph="🛁", label="Bubble Bath",
         message="Face mask on, lights down, bedtime mode engaged."),
    Item(id="book", glyph="📖", label="Bedtime Story",
         message="Sleep on it. The simulation will pass in the morning."),
    Item(id="phone", glyph="📱", label="Phone Scrolling",
         message="Still scrolling? The feed will be there tomorrow."),
    Item(id="tea", glyph="🍵", label="Herbal Tea",
         message="Chamomile now, a home-cooked feast another day."),
    Item(id="music", glyph="🎵", label="White Noise",
         message="Put on your favourite song and drift off before the chorus."),
    Item(id="candle", glyph="🕯️", label="Scented Candle",
         message="Warm feet, cool head, easy sleep."),
    Item(id="yoga", glyph="🧘", label="Gentle Yoga",
         message="Stretch it out. Badminton is waiting after the holidays."),
    Item(id="cat", glyph="🐱", label="Purring Cat",
         message="This kitty is coming home with you. No arguments."),
    Item(id="star", glyph="🌟", label="Counting Stars",
         message="One star, two stars... eyelids getting heavier..."),
    Item(id="cloud", glyph="☁️", label="Cloud Bed",
         message="Pulled this one? Sweet dreams are guaranteed."),
    Item(id="socks", glyph="🧦", label="Fuzzy Socks",
         message="Warm toes, warm everything. No room left for nightmares."),
    Item(id="mask", glyph="🕶️", label="Steam Eye Mask",
         message="Next trip we're having dinner at the top of the tower."),
    Item(id="pillow", glyph="🛌", label="Soft Pillow",
         message="Back-to-bed power unlocked. Can't get up, can sleep more."),
    Item(id="rain", glyph="🌧️", label="Rain Sounds",
         message="Five more minutes. Five more minutes. Five more minutes."),
    Item(id="night", glyph="🌃", label="City Lights",
         message="Our to-do list is long. We'll finish it one item at a time.\n"
                 "Or we sleep first (^_^)"),
    Item(id="chime", glyph="🎐", label="Wind Chimes",
         message="Still listening to that indie band on repeat?"),
    Item(id="dreamcatcher", glyph="🕸️", label="Dreamcatcher",
         message="No bad dreams get through tonight."),
    Item(id="fireplace", glyph="🔥", label="Fireplace",
         message="Cozy and warm, ready to take on tomorrow's breakfast."),
    Item(id="hammock", glyph="🏕️", label="Hammock",
         message="Your work needs you, not the other way around.\n\n"
                 "Rest is part of the job."),
    Item(id="lavender", glyph="🌿", label="Lavender",
         message="Looking forward to that woody scent on your sleeve again."),
    Item(id="balloon", glyph="🎈", label="Hot Air Balloon",
         message="Wishing you freedom, joy, and a camera roll full of real moments."),
    Item(id="unicorn", glyph="🦄", label="Hidden: Sleep Keeper",
         message="You found the secret I hid for you! ✉️\n\n"
                 "The chance of two people with something in common meeting is "
                 "one in two hundred thousand.\n"
                 "Becoming friends, one in two hundred million.\n"
                 "Becoming best friends, one in two billion.\n\n"
                 "I'm lucky to have met you against those odds.\n\nGood night.",
         is_hidden=True),
)

_BY_ID: dict[str, Item] = {item.id: item for item in CATALOG}


def get_item(item_id: str) -> Item | None:
    """Look up a catalog item by id."""
    return _BY_ID.get(item_id)


def hidden_item(catalog: tuple[Item, ...] = CATALOG) -> Item | None:
    """Return the catalog's hidden item, if any."""
    return next((item for item in catalog if item.is_hidden), None)


def standard_items(catalog: tuple[Item, ...] = CATALOG) -> list[Item]:
    """All non-hidden items in catalog order."""
    return [item for item in catalog if not item.is_hidden]


def known_ids(ids, catalog: tuple[Item, ...] = CATALOG) -> set[str]:
    """Filter ids down to those present in the catalog."""
    valid = {item.id for item in catalog}
    return {i for i in ids if isinstance(i, str) and i in valid}
