#!/usr/bin/env python3
"""
Morse Playback Scheduler

Walks an encoded message and sounds it on the shared audio output with
standard Morse timing. Each token finishes (tone plus the gap after it)
before the next one starts:

    '.'  tone 1U, gap 1U
    '-'  tone 3U, gap 1U
    ' '  gap 3U
    '/'  gap 7U

Several playbacks may run at once; they each keep their own position in
their message and share only the audio output, where their tones
interleave.
"""

import asyncio
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from audio_resource import AudioResourceError, AudioResourceManager, get_audio_manager
from morse_code import DASH, DOT, LETTER_GAP, WORD_GAP, EncodedMessage, TimingProfile
from tone_synth import TONE_FREQUENCY, ToneSynthesizer


class PlaybackState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAULTED = 'faulted'


@dataclass
class PlaybackResult:
    """Outcome of one playback pass."""
    state: PlaybackState
    tones_played: int = 0
    tones_skipped: int = 0
    tokens_processed: int = 0
    elapsed: float = 0.0  # Seconds of wall clock time
    error: Optional[BaseException] = None

    def __str__(self):
        return (f"{self.state.value}: {self.tones_played} tones played, "
                f"{self.tones_skipped} skipped, {self.tokens_processed} tokens, "
                f"{self.elapsed*1000:.1f}ms")


class PlaybackScheduler:
    """
    Plays a single encoded message.

    States: IDLE -> RUNNING -> COMPLETED | FAULTED. A scheduler runs once.
    """

    def __init__(
        self,
        message: EncodedMessage,
        timing: Optional[TimingProfile] = None,
        manager: Optional[AudioResourceManager] = None,
        synthesizer: Optional[ToneSynthesizer] = None,
        frequency_hz: float = TONE_FREQUENCY,
        sleep=None,
        debug: bool = False
    ):
        """
        Initialize the scheduler.

        Args:
            message: Encoded message to play
            timing: Timing profile (default: 80ms unit)
            manager: Audio resource manager (default: process-wide manager)
            synthesizer: Tone synthesizer (default: one sharing ``sleep``)
            frequency_hz: Tone frequency in Hz
            sleep: Coroutine function used for gaps (default: the
                synthesizer's, else asyncio.sleep)
            debug: Enable debug output
        """
        self.message = message
        self.timing = timing or TimingProfile()
        self.manager = manager or get_audio_manager()
        if synthesizer is None:
            synthesizer = ToneSynthesizer(sleep=sleep or asyncio.sleep, debug=debug)
        self.synthesizer = synthesizer
        self.sleep = sleep or synthesizer.sleep
        self.frequency_hz = frequency_hz
        self.debug = debug

        self.state = PlaybackState.IDLE
        self.result = PlaybackResult(state=self.state)

    async def run(self) -> PlaybackResult:
        """
        Play the message to the end.

        Faults are recorded in the result rather than raised.

        Returns:
            Result of the playback pass
        """
        if self.state is not PlaybackState.IDLE:
            raise RuntimeError(f"Playback already {self.state.value}")

        self._set_state(PlaybackState.RUNNING)
        start = time.monotonic()

        try:
            for token in self.message.tokens():
                await self._play_token(token)
                self.result.tokens_processed += 1
        except Exception as e:
            self.result.error = e
            self._set_state(PlaybackState.FAULTED)
            if self.debug:
                print(f"Playback aborted after {self.result.tokens_processed} tokens: {e}",
                      file=sys.stderr)
        else:
            self._set_state(PlaybackState.COMPLETED)
        finally:
            self.result.elapsed = time.monotonic() - start

        return self.result

    async def _play_token(self, token: str):
        timing = self.timing
        if token == DOT:
            await self._tone(timing.dot_ms)
            await self._wait(timing.intra_gap_ms)
        elif token == DASH:
            await self._tone(timing.dash_ms)
            await self._wait(timing.intra_gap_ms)
        elif token == LETTER_GAP:
            await self._wait(timing.letter_gap_ms)
        elif token == WORD_GAP:
            await self._wait(timing.word_gap_ms)

    async def _tone(self, duration_ms: float):
        try:
            handle = await self.manager.acquire()
        except AudioResourceError as e:
            # Keep the slot as silence so timing is unchanged
            if self.debug:
                print(f"Skipping tone: {e}", file=sys.stderr)
            handle = None

        if await self.synthesizer.play_tone(handle, self.frequency_hz, duration_ms):
            self.result.tones_played += 1
        else:
            self.result.tones_skipped += 1

    async def _wait(self, duration_ms: float):
        await self.sleep(duration_ms / 1000.0)

    def _set_state(self, state: PlaybackState):
        self.state = state
        self.result.state = state


async def playback(
    message: Union[EncodedMessage, str],
    unit_ms: float = 80.0,
    manager: Optional[AudioResourceManager] = None,
    synthesizer: Optional[ToneSynthesizer] = None,
    sleep=None,
    debug: bool = False
) -> PlaybackResult:
    """
    Play an encoded message.

    Args:
        message: Encoded message, or encoded Morse text
        unit_ms: Timing unit in milliseconds
        manager: Audio resource manager (default: process-wide manager)
        synthesizer: Tone synthesizer
        sleep: Coroutine function used to wait, takes seconds
        debug: Enable debug output

    Returns:
        Result of the playback pass
    """
    if not isinstance(message, EncodedMessage):
        message = EncodedMessage.parse(message)

    scheduler = PlaybackScheduler(
        message,
        timing=TimingProfile(unit_ms),
        manager=manager,
        synthesizer=synthesizer,
        sleep=sleep,
        debug=debug
    )
    return await scheduler.run()
