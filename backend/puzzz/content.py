"""Question content consumed at phase initialization.

The synchronization core treats question sources as opaque: a provider's
``generate(theme, count)`` result is embedded verbatim into ``gameState``.
AI-generated sets live behind the same interface outside this package.
"""

import random
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class QuestionRecord:
    id: str
    text: str
    category: str = 'general'
    alt_text: Optional[str] = None  # imposter prompt or second option
    spiciness: int = 1

    def to_dict(self) -> Dict:
        return asdict(self)


PARANOIA_QUESTIONS = [
    'Who is most likely to help someone find their lost pet?',
    'Who is most likely to accidentally wear mismatched shoes?',
    'Who is most likely to get caught talking to themselves in public?',
    'Who is most likely to forget their own birthday?',
    'Who is most likely to survive a zombie apocalypse?',
    'Who is most likely to become famous?',
    'Who is most likely to cry at a movie?',
    'Who is most likely to eat the last slice without asking?',
    'Who is most likely to fall asleep at a party?',
    'Who is most likely to win a dance battle?',
    'Who is most likely to adopt ten cats?',
    'Who is most likely to laugh at the wrong moment?',
]

ODD_ONE_OUT_PAIRS = [
    ('Name something you might find in a kitchen', 'Name something you might find in a bathroom', 'household'),
    ('Name a farm animal', 'Name a zoo animal', 'animals'),
    ('Name a breakfast food', 'Name a dessert', 'food'),
    ('Name something you do when nervous', 'Name something you do when excited', 'feelings'),
    ('Name a summer sport', 'Name a winter sport', 'sports'),
    ('Name something you bring to the beach', 'Name something you bring camping', 'travel'),
    ('Name a superhero', 'Name a villain', 'movies'),
    ('Name a reason to be late for work', 'Name a reason to leave work early', 'work'),
]

WOULD_YOU_RATHER_PAIRS = [
    ('have superpowers', 'have unlimited money', 'fantasy'),
    ('always be ten minutes late', 'always be twenty minutes early', 'habits'),
    ('live by the beach', 'live in the mountains', 'places'),
    ('only eat pizza', 'never eat pizza again', 'food'),
    ('be able to fly', 'be able to turn invisible', 'fantasy'),
    ('talk to animals', 'speak every human language', 'skills'),
    ('never use social media again', 'never watch another movie', 'lifestyle'),
    ('have a rewind button', 'have a pause button for your life', 'fantasy'),
    ('sing everything you say', 'dance everywhere you walk', 'silly'),
    ('explore space', 'explore the deep ocean', 'adventure'),
]

SAY_IT_OR_PAY_IT_QUESTIONS = [
    ("What's the most embarrassing thing you've done in public?", 'mild'),
    ("What's a secret talent you have that no one knows about?", 'mild'),
    ("What's the weirdest food combination you actually enjoy?", 'mild'),
    ("What's your most irrational fear?", 'mild'),
    ('Have you ever had a crush on someone in this room?', 'spicy'),
    ("What's the biggest lie you've ever told?", 'spicy'),
    ('Who here do you think would be the worst roommate?', 'spicy'),
    ("What's the most illegal thing you've ever done?", 'nuclear'),
    ('Who here would you least want to be stuck in an elevator with and why?', 'nuclear'),
]


class QuestionProvider:
    """Interface: ``generate(theme, count) -> [QuestionRecord, ...]``."""

    def generate(self, theme: str, count: int) -> List[QuestionRecord]:
        raise NotImplementedError


class StaticQuestionProvider(QuestionProvider):
    """Built-in question sets, sampled without replacement."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate(self, theme: str, count: int) -> List[QuestionRecord]:
        if theme == 'paranoia':
            pool = [
                QuestionRecord(id=f'paranoia-{i}', text=q)
                for i, q in enumerate(PARANOIA_QUESTIONS)
            ]
        elif theme == 'odd_one_out':
            pool = [
                QuestionRecord(id=f'odd-{i}', text=normal, alt_text=imposter, category=cat)
                for i, (normal, imposter, cat) in enumerate(ODD_ONE_OUT_PAIRS)
            ]
        elif theme == 'would_you_rather':
            pool = [
                QuestionRecord(id=f'wyr-{i}', text=a, alt_text=b, category=cat)
                for i, (a, b, cat) in enumerate(WOULD_YOU_RATHER_PAIRS)
            ]
        elif theme == 'say_it_or_pay_it':
            pool = [
                QuestionRecord(id=f'say-{i}', text=text, category=spice)
                for i, (text, spice) in enumerate(SAY_IT_OR_PAY_IT_QUESTIONS)
            ]
        else:
            raise ValueError(f'no static questions for theme {theme!r}')
        count = max(0, min(count, len(pool)))
        return self.rng.sample(pool, count)
