"""Puzzz Panic challenge catalog.

Every challenge type has a generator that draws the round's parameters and
solution from an injected RNG, and a base-score function (0-1000) that
judges a single response. Generated challenges are embedded in gameState so
every client renders and scores the same round.
"""

import random
from typing import Any, Callable, Dict, List

from puzzz.services.games.selection import shuffled

CATALOG: List[Dict[str, Any]] = [
    {'id': 'tap_to_ten', 'name': 'Tap to Ten', 'type': 'tap_counter', 'timeLimit': 15,
     'instructions': 'Tap the screen exactly 10 times as fast as you can!'},
    {'id': 'color_flash', 'name': 'Color Flash', 'type': 'color_word', 'timeLimit': 10,
     'instructions': "Tap the word that matches its text (not the color it's shown in)!"},
    {'id': 'tap_green', 'name': 'Tap When Green', 'type': 'reaction_time', 'timeLimit': 15,
     'instructions': 'Wait for the screen to turn green, then tap as fast as possible!'},
    {'id': 'swipe_order', 'name': 'Swipe Order', 'type': 'swipe_sequence', 'timeLimit': 10,
     'instructions': 'Swipe in the exact order shown!'},
    {'id': 'pattern_match', 'name': 'Pattern Match', 'type': 'pattern', 'timeLimit': 12,
     'instructions': 'A pattern of shapes will flash. Tap the correct next shape!'},
    {'id': 'emoji_recall', 'name': 'Emoji Recall', 'type': 'emoji_memory', 'timeLimit': 15,
     'instructions': 'Three emojis will appear briefly. Pick the one that was missing!'},
    {'id': 'spot_match', 'name': 'Spot the Match', 'type': 'sequence_match', 'timeLimit': 10,
     'instructions': 'Two emoji sequences will flash. Tap if they match!'},
    {'id': 'quick_math', 'name': 'Quick Math', 'type': 'math', 'timeLimit': 12,
     'instructions': 'Solve the equation as fast as possible!'},
    {'id': 'color_tap_race', 'name': 'Color Tap Race', 'type': 'color_tap', 'timeLimit': 15,
     'instructions': 'Tap all the blue shapes as fast as possible!'},
    {'id': 'tap_fastest', 'name': 'Tap the Fast One', 'type': 'speed_tap', 'timeLimit': 10,
     'instructions': 'One icon moves faster than the rest. Tap the fastest one!'},
    {'id': 'memory_flip', 'name': 'Memory Flip', 'type': 'grid_memory', 'timeLimit': 15,
     'instructions': 'A 3x3 grid will flash. Pick where the specific emoji was!'},
    {'id': 'stop_target', 'name': 'Stop at Target', 'type': 'timing', 'timeLimit': 10,
     'instructions': 'Tap to stop the bar in the green zone!'},
    {'id': 'shape_swipe', 'name': 'Shape Swipe', 'type': 'direction_swipe', 'timeLimit': 8,
     'instructions': 'Swipe in the direction the arrow is pointing!'},
    {'id': 'count_cats', 'name': 'Count the Cats', 'type': 'counting', 'timeLimit': 12,
     'instructions': 'Count how many cats you see!'},
    {'id': 'hold_release', 'name': 'Hold and Release', 'type': 'hold_timing', 'timeLimit': 8,
     'instructions': 'Hold the screen down and release exactly at 3 seconds!'},
]

EMOJIS = ['🐱', '🐶', '🐭', '🐹', '🐰', '🦊', '🐻', '🐼', '🐨', '🐯', '🦁', '🐸', '🐵', '🐔', '🐧', '🦆']
SHAPES = ['⭐', '🔴', '🔵', '🟢', '🟡', '🟣', '⚫', '⚪', '🔶', '🔷']
DIRECTIONS = ['up', 'down', 'left', 'right']
COLOR_WORDS = ['RED', 'BLUE', 'GREEN', 'YELLOW']
TAP_TARGET = 10
HOLD_TARGET_MS = 3000


def _tap_counter(rng):
    return {'target': TAP_TARGET}, TAP_TARGET


def _color_word(rng):
    word = rng.choice(COLOR_WORDS)
    return {'word': word, 'color': rng.choice(COLOR_WORDS).lower(), 'options': list(COLOR_WORDS)}, word


def _reaction_time(rng):
    return {'greenDelayMs': rng.randint(2000, 6000)}, True


def _swipe_sequence(rng):
    seq = [rng.choice(DIRECTIONS) for _ in range(3)]
    return {'sequence': seq}, seq


def _pattern(rng):
    nxt = rng.choice(SHAPES)
    wrong = [s for s in SHAPES if s != nxt][:2]
    return {
        'shapes': [rng.choice(SHAPES) for _ in range(4)],
        'options': shuffled([nxt] + wrong, rng),
    }, nxt


def _emoji_memory(rng):
    pool = shuffled(EMOJIS, rng)
    shown, rest = pool[:3], pool[3:]
    missing = rest[0]
    return {'shown': shown, 'options': shuffled([missing] + rest[1:3], rng)}, missing


def _sequence_match(rng):
    seq1 = [rng.choice(EMOJIS) for _ in range(3)]
    match = rng.random() > 0.5
    seq2 = list(seq1) if match else [rng.choice(EMOJIS) for _ in range(3)]
    return {'seq1': seq1, 'seq2': seq2}, seq1 == seq2


def _math(rng):
    a, b, c = rng.randint(1, 9), rng.randint(1, 9), rng.randint(1, 4)
    answer = a + b * c
    options = shuffled([answer, answer + 1, answer - 1], rng)
    return {'question': f'{a} + {b} × {c}', 'options': options}, answer


def _color_tap(rng):
    shapes = []
    for i in range(8):
        color = 'blue' if rng.random() > 0.4 else rng.choice(['red', 'green', 'yellow'])
        shapes.append({'id': i, 'emoji': rng.choice(SHAPES), 'color': color})
    return {'shapes': shapes}, sum(1 for s in shapes if s['color'] == 'blue')


def _speed_tap(rng):
    icons = [{'id': i, 'emoji': rng.choice(EMOJIS), 'speed': rng.uniform(1, 3)} for i in range(4)]
    fastest = max(icons, key=lambda icon: icon['speed'])['id']
    return {'icons': icons}, fastest


def _grid_memory(rng):
    grid = [[rng.choice(EMOJIS) if rng.random() > 0.7 else '' for _ in range(3)] for _ in range(3)]
    filled = [(r, c) for r in range(3) for c in range(3) if grid[r][c]]
    if not filled:
        grid[1][1] = EMOJIS[0]
        filled = [(1, 1)]
    row, col = filled[rng.randrange(len(filled))]
    return {'grid': grid, 'target': grid[row][col]}, {'row': row, 'col': col}


def _timing(rng):
    zone = {'start': rng.uniform(20, 60), 'end': rng.uniform(60, 80)}
    return {'zone': zone, 'sweepMs': 4000}, zone


def _direction_swipe(rng):
    direction = rng.choice(DIRECTIONS)
    return {'direction': direction}, direction


def _counting(rng):
    total = rng.randint(10, 24)
    cats = rng.randint(2, 7)
    others = [rng.choice(EMOJIS[1:]) for _ in range(total - cats)]
    return {'emojis': shuffled(['🐱'] * cats + others, rng)}, cats


def _hold_timing(rng):
    return {'targetMs': HOLD_TARGET_MS}, HOLD_TARGET_MS


GENERATORS: Dict[str, Callable] = {
    'tap_counter': _tap_counter,
    'color_word': _color_word,
    'reaction_time': _reaction_time,
    'swipe_sequence': _swipe_sequence,
    'pattern': _pattern,
    'emoji_memory': _emoji_memory,
    'sequence_match': _sequence_match,
    'math': _math,
    'color_tap': _color_tap,
    'speed_tap': _speed_tap,
    'grid_memory': _grid_memory,
    'timing': _timing,
    'direction_swipe': _direction_swipe,
    'counting': _counting,
    'hold_timing': _hold_timing,
}


def generate(catalog_index: int, rng: random.Random) -> Dict[str, Any]:
    entry = CATALOG[catalog_index % len(CATALOG)]
    params, solution = GENERATORS[entry['type']](rng)
    return {
        'id': entry['id'],
        'name': entry['name'],
        'type': entry['type'],
        'instructions': entry['instructions'],
        'timeLimitMs': entry['timeLimit'] * 1000,
        'params': params,
        'solution': solution,
    }


def _number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _closeness(response, solution, step):
    n = _number(response)
    if n is None:
        return 0.0
    if n == solution:
        return 1000.0
    return max(0.0, 1000 - abs(n - solution) * step)


def base_score(challenge: Dict[str, Any], response: Any) -> float:
    """Base score in [0, 1000] for a single response to ``challenge``."""
    kind = challenge['type']
    solution = challenge.get('solution')
    if kind == 'tap_counter':
        return _closeness(response, solution, 100)
    if kind == 'color_tap':
        return _closeness(response, solution, 200)
    if kind == 'counting':
        return _closeness(response, solution, 150)
    if kind == 'reaction_time':
        reaction = _number(response)
        if response is False or reaction is None or reaction < 0:
            return 0.0
        return max(200.0, 1000 - reaction / 2)
    if kind == 'grid_memory':
        if not isinstance(response, dict):
            return 0.0
        hit = response.get('row') == solution['row'] and response.get('col') == solution['col']
        return 1000.0 if hit else 0.0
    if kind == 'timing':
        position = _number(response)
        if position is None or not solution['start'] <= position <= solution['end']:
            return 0.0
        center = (solution['start'] + solution['end']) / 2
        return max(600.0, 1000 - abs(position - center) * 20)
    if kind == 'hold_timing':
        held = _number(response)
        if held is None:
            return 0.0
        diff = abs(held - solution)
        return 1000.0 if diff < 200 else max(0.0, 1000 - diff / 5)
    if kind == 'swipe_sequence':
        return 1000.0 if list(response or []) == list(solution) else 0.0
    if kind in GENERATORS:
        return 1000.0 if response == solution else 0.0
    return 500.0
