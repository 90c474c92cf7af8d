#!/usr/bin/env python3
"""
Tone Synthesizer

Generates the sine tones used for dots and dashes. Each tone starts at a
gain of 0.3 and decays exponentially toward 0.01 over its duration, which
keeps the onset and release free of clicks.
"""

import asyncio
import sys

import numpy as np


TONE_FREQUENCY = 600.0  # Hz
INITIAL_GAIN = 0.3
FINAL_GAIN = 0.01


def tone_samples(
    frequency_hz: float,
    duration_ms: float,
    sample_rate: int,
    initial_gain: float = INITIAL_GAIN,
    final_gain: float = FINAL_GAIN
) -> np.ndarray:
    """
    Generate a decaying sine tone.

    Args:
        frequency_hz: Tone frequency in Hz
        duration_ms: Duration in milliseconds
        sample_rate: Sample rate in Hz
        initial_gain: Gain at the start of the tone
        final_gain: Gain reached at the end of the tone

    Returns:
        Audio samples as float32 array
    """
    if frequency_hz <= 0 or sample_rate <= 0:
        raise ValueError(f"Invalid tone: {frequency_hz} Hz at {sample_rate} Hz sample rate")
    if duration_ms < 0:
        raise ValueError(f"Tone duration cannot be negative: {duration_ms}")

    n_samples = int(round(duration_ms * sample_rate / 1000.0))
    t = np.arange(n_samples) / sample_rate

    carrier = np.sin(2 * np.pi * frequency_hz * t)

    # Exponential ramp from initial_gain to final_gain across the tone
    duration = duration_ms / 1000.0
    if duration > 0:
        envelope = initial_gain * (final_gain / initial_gain) ** (t / duration)
    else:
        envelope = np.zeros_like(t)

    return (carrier * envelope).astype(np.float32)


class ToneSynthesizer:
    """
    Plays tones on the shared audio output.

    Completion is signalled after the nominal duration whether or not the
    tone could actually be played.
    """

    def __init__(self, sample_rate: int = 44100, sleep=asyncio.sleep, debug: bool = False):
        """
        Initialize the synthesizer.

        Args:
            sample_rate: Fallback sample rate for devices that do not report one
            sleep: Coroutine function used to wait, takes seconds
            debug: Enable debug output
        """
        self.sample_rate = sample_rate
        self.sleep = sleep
        self.debug = debug

    async def play_tone(self, handle, frequency_hz: float, duration_ms: float) -> bool:
        """
        Start a tone and wait until its nominal duration has elapsed.

        Args:
            handle: Output device from the audio resource manager (may be None)
            frequency_hz: Tone frequency in Hz
            duration_ms: Tone duration in milliseconds

        Returns:
            True if the tone was handed to the output device
        """
        played = False
        try:
            if handle is None:
                raise RuntimeError("no audio output")
            sample_rate = getattr(handle, 'sample_rate', self.sample_rate)
            handle.play(tone_samples(frequency_hz, duration_ms, sample_rate))
            played = True
        except Exception as e:
            if self.debug:
                print(f"Error in play_tone: {e}", file=sys.stderr)

        await self.sleep(max(duration_ms, 0) / 1000.0)
        return played
