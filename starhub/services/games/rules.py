"""Rule state machines for the quiz and memory games.

Both are plain objects advanced by explicit calls (answer, tick, flip)
so a caller controls the clock.
"""

import random
from typing import List, Optional


class QuizQuestion:
    def __init__(self, id: int, question: str, options: List[tuple]):
        self.id = id
        self.question = question
        # [(text, is_correct), ...]
        self.options = options

    def is_correct(self, option_index: int) -> bool:
        return bool(self.options[option_index][1])


def parse_quiz_markdown(text: str) -> List[QuizQuestion]:
    """Parse the quiz bank format.

    ``## Question`` opens a question, ``**...**`` is its prompt, and each
    ``- `` line is a wrong option while a ``✅ `` line is the right one.
    Questions without a prompt or options are dropped.
    """
    questions = []
    prompt = None
    options = []
    next_id = 1

    def flush():
        nonlocal next_id
        if prompt and options:
            questions.append(QuizQuestion(next_id, prompt, list(options)))
            next_id += 1

    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith('## Question'):
            flush()
            prompt = None
            options = []
        elif line.startswith('**') and line.endswith('**') and len(line) > 4:
            prompt = line[2:-2]
        elif line.startswith('- ') or line.startswith('✅'):
            correct = line.startswith('✅')
            option = line[1:].strip() if correct else line[2:].strip()
            if option:
                options.append((option, correct))
    flush()
    return questions


class QuizRound:
    TIME_PER_QUESTION = 15
    MAX_STRIKES = 3
    PASS_PERCENTAGE = 70

    def __init__(self, questions: List[QuizQuestion], shuffle: bool = False, rng: Optional[random.Random] = None):
        if not questions:
            raise ValueError('A quiz needs at least one question')
        self.questions = list(questions)
        if shuffle:
            (rng or random).shuffle(self.questions)
        self.current_index = 0
        self.score = 0
        self.points = 0
        self.strikes = 0
        self.time_remaining = self.TIME_PER_QUESTION
        self.status = 'playing'  # playing, paused, finished, game_over

    @property
    def current_question(self) -> QuizQuestion:
        return self.questions[self.current_index]

    def _require_playing(self):
        if self.status != 'playing':
            raise ValueError(f'Quiz is {self.status}')

    def pause(self):
        if self.status == 'playing':
            self.status = 'paused'
        elif self.status == 'paused':
            self.status = 'playing'

    def tick(self, seconds: int = 1) -> None:
        self._require_playing()
        self.time_remaining = max(0, self.time_remaining - seconds)
        if self.time_remaining == 0:
            self.time_up()

    def answer(self, option_index: int) -> bool:
        self._require_playing()
        correct = self.current_question.is_correct(option_index)
        if correct:
            self.score += 1
            self.points += 100 + self.time_remaining
        else:
            self.strikes += 1
        self._advance()
        return correct

    def time_up(self) -> None:
        self._require_playing()
        self.time_remaining = 0
        self.strikes += 1
        self._advance()

    def _advance(self):
        if self.strikes >= self.MAX_STRIKES:
            self.status = 'game_over'
            return
        if self.current_index + 1 >= len(self.questions):
            self.status = 'finished'
            return
        self.current_index += 1
        self.time_remaining = self.TIME_PER_QUESTION

    def result(self) -> dict:
        if self.status == 'game_over':
            total = self.current_index + 1
        else:
            total = len(self.questions)
        percentage = self.score / total * 100
        return {
            'score': self.score,
            'totalQuestions': total,
            'percentage': percentage,
            'passed': self.status == 'finished' and percentage >= self.PASS_PERCENTAGE,
            'points': self.points,
        }


class MemoryCard:
    def __init__(self, id: str, pair_id: str):
        self.id = id
        self.pair_id = pair_id
        self.is_flipped = False
        self.is_matched = False


class MemoryBoard:
    PAIRS = 12
    START_TIME = 180
    MIN_TIME = 30
    TIME_STEP = 5
    LEVEL_BONUS = 100

    def __init__(self, images: Optional[List[str]] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.images = list(images) if images else [f'card-{i}' for i in range(1, self.PAIRS + 1)]
        if len(self.images) < self.PAIRS:
            raise ValueError(f'Memory board needs {self.PAIRS} images')
        self.level = 1
        self.score = 0
        self._deal(self.START_TIME)

    def _deal(self, seconds: int):
        picks = self.images[:self.PAIRS]
        cards = []
        for pair_id in picks:
            cards.append(MemoryCard(f'{pair_id}-a', pair_id))
            cards.append(MemoryCard(f'{pair_id}-b', pair_id))
        self.rng.shuffle(cards)
        self.cards = {c.id: c for c in cards}
        self.flipped = []
        self.matched_pairs = 0
        self.moves = 0
        self.time_remaining = seconds
        self.max_time = seconds
        self.status = 'playing'  # playing, paused, lost, level_complete

    @classmethod
    def time_for_level(cls, level: int) -> int:
        return max(cls.MIN_TIME, cls.START_TIME - (level - 1) * cls.TIME_STEP)

    def pause(self):
        if self.status == 'playing':
            self.status = 'paused'
        elif self.status == 'paused':
            self.status = 'playing'

    def tick(self, seconds: int = 1) -> None:
        if self.status != 'playing':
            return
        self.time_remaining = max(0, self.time_remaining - seconds)
        if self.time_remaining == 0:
            self.status = 'lost'

    def flip(self, card_id: str) -> Optional[bool]:
        """Flip a card.

        Returns None after the first card of a pair, True or False after
        the second depending on whether the two match. Clicks on matched,
        already-flipped or unknown cards are ignored.
        """
        if self.status != 'playing':
            return None
        card = self.cards.get(card_id)
        if card is None or card.is_flipped or card.is_matched:
            return None
        card.is_flipped = True
        self.flipped.append(card)
        if len(self.flipped) < 2:
            return None

        first, second = self.flipped
        self.flipped = []
        self.moves += 1
        matched = first.pair_id == second.pair_id
        for c in (first, second):
            c.is_matched = matched
            c.is_flipped = matched
        if matched:
            self.matched_pairs += 1
            if self.matched_pairs == self.PAIRS:
                self.score += self.LEVEL_BONUS + self.time_remaining
                self.status = 'level_complete'
        return matched

    def next_level(self) -> None:
        if self.status != 'level_complete':
            raise ValueError('Level is not complete')
        self.level += 1
        self._deal(self.time_for_level(self.level))
