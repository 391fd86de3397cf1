"""Cook mode - step navigation over a frozen copy of a recipe's steps.

States are step indexes 0..N-1 (N >= 1). ``next``/``previous`` clamp at the
ends instead of failing; ``jump_to`` outside the range raises OutOfRangeError.
There is no separate "done" state: finishing is the UI's reading of the last
index. A session is owned by the cook-mode screen and never persisted;
re-extracting a recipe means starting a new session.
"""

import re
from enum import Enum
from typing import Optional, Tuple

from companion.models.errors import OutOfRangeError, ValidationError
from companion.models.models import Recipe, is_complete_recipe
from companion.utils.logger import logger


class VoiceCommand(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    REPEAT = "repeat"
    RESTART = "restart"
    LAST = "last"
    JUMP = "jump"


NUMBER_WORDS = {
    word: index + 1
    for index, word in enumerate(
        "one two three four five six seven eight nine ten eleven twelve thirteen fourteen "
        "fifteen sixteen seventeen eighteen nineteen twenty".split()
    )
}
NUMBER_WORDS.update({"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5})

_PHRASES = (
    (VoiceCommand.NEXT, ("next step", "next", "continue", "forward", "go on")),
    (VoiceCommand.PREVIOUS, ("previous step", "previous", "go back", "back")),
    (VoiceCommand.REPEAT, ("say again", "say that again", "repeat", "again")),
    (VoiceCommand.RESTART, ("start over", "restart", "first step", "from the top")),
    (VoiceCommand.LAST, ("last step", "final step")),
)

_STEP_NUMBER = re.compile(r"\bstep\s+(?:number\s+)?(\w+)\b")


class CookSession:
    """Navigation state for one cook-mode screen."""

    def __init__(self, recipe_id: str, steps: Tuple[str, ...]) -> None:
        if not steps:
            raise ValidationError("steps", "a cook session needs at least one step")
        self._recipe_id = recipe_id
        self._steps = tuple(steps)
        self._index = 0

    @classmethod
    def start(cls, recipe: Recipe) -> "CookSession":
        """Start a session at step 0 on a complete recipe.

        Raises:
            ValidationError: If the recipe has no steps (incomplete extraction).
        """
        if not is_complete_recipe(recipe):
            raise ValidationError("steps", f"recipe '{recipe.title}' has no steps and cannot be cooked")
        logger.info(f"Cook session started for '{recipe.title}' ({len(recipe.steps)} steps)")
        return cls(recipe.id, tuple(recipe.steps))

    @property
    def recipe_id(self) -> str:
        return self._recipe_id

    @property
    def steps(self) -> Tuple[str, ...]:
        return self._steps

    @property
    def current_step_index(self) -> int:
        return self._index

    @property
    def current_step(self) -> str:
        return self._steps[self._index]

    @property
    def is_first_step(self) -> bool:
        return self._index == 0

    @property
    def is_last_step(self) -> bool:
        return self._index == len(self._steps) - 1

    @property
    def progress(self) -> str:
        """1-based position, e.g. "2/5"."""
        return f"{self._index + 1}/{len(self._steps)}"

    def next(self) -> str:
        """Move forward one step; stays put on the last step."""
        self._index = min(self._index + 1, len(self._steps) - 1)
        return self.current_step

    def previous(self) -> str:
        """Move back one step; stays put on the first step."""
        self._index = max(self._index - 1, 0)
        return self.current_step

    def jump_to(self, index: int) -> str:
        """Go to a 0-based step index.

        Raises:
            OutOfRangeError: If index is outside 0..N-1.
        """
        if not 0 <= index < len(self._steps):
            raise OutOfRangeError(index, len(self._steps))
        self._index = index
        return self.current_step

    def handle_command(self, utterance: str) -> Optional[VoiceCommand]:
        """Map a spoken phrase to a navigation action and apply it.

        "step three" / "go to step 3" are 1-based. Unrecognized phrases return
        None and leave the session unchanged.

        Raises:
            OutOfRangeError: If a spoken step number is outside the recipe.
        """
        text = " ".join(re.sub(r"[^\w\s]", " ", utterance.lower()).split())
        if not text:
            return None

        match = _STEP_NUMBER.search(text)
        if match and not text.startswith(("next step", "previous step", "first step", "last step", "final step")):
            token = match.group(1)
            number = int(token) if token.isdigit() else NUMBER_WORDS.get(token)
            if number is not None:
                self.jump_to(number - 1)
                logger.debug(f"Voice command '{utterance}' -> jump to step {number}")
                return VoiceCommand.JUMP

        command = _match_phrase(text)
        if command is None:
            logger.debug(f"Voice command not recognized: '{utterance}'")
            return None

        if command == VoiceCommand.NEXT:
            self.next()
        elif command == VoiceCommand.PREVIOUS:
            self.previous()
        elif command == VoiceCommand.RESTART:
            self.jump_to(0)
        elif command == VoiceCommand.LAST:
            self.jump_to(len(self._steps) - 1)
        logger.debug(f"Voice command '{utterance}' -> {command.value} (now {self.progress})")
        return command


def _match_phrase(text: str) -> Optional[VoiceCommand]:
    """First command whose phrase appears as whole words in the text."""
    padded = f" {text} "
    for command, phrases in _PHRASES:
        if any(f" {phrase} " in padded for phrase in phrases):
            return command
    return None
