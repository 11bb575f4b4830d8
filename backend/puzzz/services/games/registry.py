import random
from typing import Any, Dict, Mapping, Optional

from puzzz.content import QuestionProvider
from puzzz.errors import ValidationError
from puzzz.services.games.cat_conspiracy import CatConspiracyMachine
from puzzz.services.games.machine import PhaseMachine
from puzzz.services.games.odd_one_out import OddOneOutMachine
from puzzz.services.games.paranoia import ParanoiaMachine
from puzzz.services.games.puzzz_panic import PuzzzPanicMachine
from puzzz.services.games.say_it_or_pay_it import SayItOrPayItMachine
from puzzz.services.games.would_you_rather import WouldYouRatherMachine

MACHINE_CLASSES = (
    ParanoiaMachine,
    OddOneOutMachine,
    PuzzzPanicMachine,
    CatConspiracyMachine,
    WouldYouRatherMachine,
    SayItOrPayItMachine,
)
GAMES = tuple(cls.game for cls in MACHINE_CLASSES)


def build_machines(config: Optional[Mapping[str, Any]] = None,
                   rng: Optional[random.Random] = None,
                   provider: Optional[QuestionProvider] = None) -> Dict[str, PhaseMachine]:
    """One machine per game tag, sharing the same RNG and content provider."""
    rng = rng or random.Random()
    return {cls.game: cls(rng=rng, provider=provider, config=config) for cls in MACHINE_CLASSES}


def machine_for(machines: Mapping[str, PhaseMachine], game: str) -> PhaseMachine:
    try:
        return machines[game]
    except KeyError:
        raise ValidationError(f'Unknown game {game!r}') from None
