#!/usr/bin/env python3
"""
Audio Resource Manager

Owns the single audio output shared by every transmission. The output is
created lazily on first use and may come up suspended (no audio is allowed
until the user has interacted with the application); it is resumed before
each tone is played.
"""

import asyncio
import sys
import threading
from enum import Enum
from typing import Optional

import numpy as np


class AudioResourceError(RuntimeError):
    """The audio output could not be created or resumed."""


class SynthesisError(RuntimeError):
    """The audio output refused a tone."""


class AudioResourceState(Enum):
    UNINITIALIZED = 'uninitialized'
    SUSPENDED = 'suspended'
    RUNNING = 'running'


class SoundDeviceOutput:
    """
    Mono output stream fed from a single tone buffer.

    Playing a tone replaces whatever tone is still sounding; the stream
    callback outputs silence once the buffer is exhausted.
    """

    def __init__(self, sample_rate: int = 44100, blocksize: int = 256):
        """
        Open the output stream in the stopped state.

        Args:
            sample_rate: Output sample rate in Hz
            blocksize: Frames per stream callback
        """
        import sounddevice as sd

        self.sample_rate = sample_rate
        self._lock = threading.Lock()
        self._buffer = np.zeros(0, dtype=np.float32)
        self._position = 0
        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype='float32',
            blocksize=blocksize,
            latency='low',
            callback=self._callback
        )

    @property
    def active(self) -> bool:
        return self._stream.active

    def start(self):
        self._stream.start()

    def stop(self):
        self._stream.stop()

    def play(self, samples: np.ndarray):
        """
        Start sounding ``samples`` without waiting for them to finish.

        Raises:
            SynthesisError: If the stream is closed or not running
        """
        if self._stream.closed or not self._stream.active:
            raise SynthesisError("Output stream is not running")
        with self._lock:
            self._buffer = np.asarray(samples, dtype=np.float32)
            self._position = 0

    def _callback(self, outdata, frames, time_info, status):
        with self._lock:
            chunk = self._buffer[self._position:self._position + frames]
            self._position += len(chunk)
        outdata.fill(0)
        outdata[:len(chunk), 0] = chunk


class AudioResourceManager:
    """
    Lazily creates the shared output device and keeps it running.

    The device factory is called once; it must return an object with an
    ``active`` attribute and ``start``, ``stop`` and ``play`` methods.
    """

    def __init__(self, device_factory=None, debug: bool = False):
        """
        Initialize the manager.

        Args:
            device_factory: Callable creating the output device
                (default: SoundDeviceOutput)
            debug: Enable debug output
        """
        self.device_factory = device_factory or SoundDeviceOutput
        self.debug = debug

        self._device = None
        self._state = AudioResourceState.UNINITIALIZED
        self._resuming: Optional[asyncio.Task] = None

        # Number of completed resume operations
        self.resume_count = 0

    @property
    def state(self) -> AudioResourceState:
        return self._state

    @property
    def handle(self):
        return self._device

    def open(self):
        """
        Create the output device if it does not exist yet.

        Returns:
            The shared output device

        Raises:
            AudioResourceError: If the device cannot be created
        """
        if self._device is None:
            try:
                device = self.device_factory()
            except Exception as e:
                raise AudioResourceError(f"Cannot open audio output: {e}") from e

            self._device = device
            if device.active:
                self._state = AudioResourceState.RUNNING
            else:
                self._state = AudioResourceState.SUSPENDED

            if self.debug:
                print(f"Audio output initialized ({self._state.value})", file=sys.stderr)

        return self._device

    async def acquire(self):
        """
        Return the output device, resuming it first if it is suspended.

        Callers arriving while a resume is in progress wait for that same
        resume instead of starting another one.

        Returns:
            The shared output device in the running state

        Raises:
            AudioResourceError: If the device cannot be created or resumed
        """
        device = self.open()
        if self._state is AudioResourceState.RUNNING:
            if device.active:
                return device
            # Stream stopped underneath us
            self._state = AudioResourceState.SUSPENDED
            if self.debug:
                print("Audio output stopped by the device", file=sys.stderr)

        if self._resuming is None:
            self._resuming = asyncio.ensure_future(self._resume(device))
        await asyncio.shield(self._resuming)
        return device

    async def _resume(self, device):
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, device.start)
        except Exception as e:
            if self.debug:
                print(f"Audio output resume failed: {e}", file=sys.stderr)
            raise AudioResourceError(f"Cannot resume audio output: {e}") from e
        finally:
            self._resuming = None

        self.resume_count += 1
        self._state = AudioResourceState.RUNNING
        if self.debug:
            print("Audio output resumed", file=sys.stderr)

    def suspend(self):
        """Stop the output stream; the next acquire resumes it."""
        if self._state is not AudioResourceState.RUNNING:
            return
        self._device.stop()
        self._state = AudioResourceState.SUSPENDED
        if self.debug:
            print("Audio output suspended", file=sys.stderr)


# Process-wide manager shared by every transmission
_audio_manager: Optional[AudioResourceManager] = None


def get_audio_manager() -> AudioResourceManager:
    """
    Get or create the global audio resource manager.

    Returns:
        Global AudioResourceManager instance
    """
    global _audio_manager
    if _audio_manager is None:
        _audio_manager = AudioResourceManager()
    return _audio_manager
