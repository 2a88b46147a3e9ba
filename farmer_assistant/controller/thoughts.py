"""
Progress "thought" sequences shown while a request is loading.

The thoughts are illustrative only; they are not tied to real progress.
A ThoughtSequence appends them one at a time at fixed multiples of a delay
and can be cancelled, which the mode controller does as soon as the real
response arrives or the mode changes.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from farmer_assistant.models.requests import Mode

logger = logging.getLogger(__name__)

MODE_THOUGHTS: Dict[Mode, List[str]] = {
    Mode.DISEASE: [
        "🤔 Analyzing your crop image...",
        "🎯 Identifying potential issues...",
        "🔬 Calling disease detection specialist...",
        "✅ Analysis complete! Preparing response...",
    ],
    Mode.SCHEMES: [
        "🤔 Understanding your query...",
        "🔍 Searching government schemes database...",
        "📊 Finding relevant schemes and policies...",
        "✅ Query complete! Preparing information...",
    ],
    Mode.CONSULTANT: [
        "🤔 Understanding your question...",
        "👨‍🌾 Connecting you with the selected expert...",
        "📚 Reviewing your farm profile...",
        "✅ Consultation ready! Preparing advice...",
    ],
    Mode.ADVISORY: [
        "🌦️ Collecting current weather conditions...",
        "🐛 Checking pest and disease risk models...",
        "📈 Estimating risk for your crop stage...",
        "✅ Advisory ready! Preparing recommendations...",
    ],
    Mode.TALK: [
        "🎤 Processing your audio...",
        "🔊 Converting speech to text...",
        "🌐 Translating if needed...",
        "✅ Transcription complete!",
    ],
}

GENERIC_THOUGHTS = [
    "🤔 Processing your request...",
    "⚙️ Working on it...",
    "📊 Almost done...",
    "✅ Complete!",
]


def thoughts_for_mode(mode: Mode) -> List[str]:
    return list(MODE_THOUGHTS.get(mode, GENERIC_THOUGHTS))


class ThoughtSequence:
    """
    Appends thoughts to a shared list on a fixed schedule.

    Thought ``i`` appears ``i * delay`` seconds after start().
    """

    def __init__(
        self,
        thoughts: Sequence[str],
        delay: float = 2.0,
        on_thought: Optional[Callable[[str], None]] = None,
    ):
        self._thoughts = list(thoughts)
        self._delay = delay
        self._on_thought = on_thought
        self._shown: List[str] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def shown(self) -> List[str]:
        return list(self._shown)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        for index, thought in enumerate(self._thoughts):
            wait = started + index * self._delay - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)
            self._shown.append(thought)
            if self._on_thought is not None:
                self._on_thought(thought)

    def start(self) -> asyncio.Task:
        """Schedule the sequence on the running event loop."""
        self.cancel()
        self._shown = []
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
