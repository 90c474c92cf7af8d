#!/usr/bin/env python3
"""
Keying Monitor

Renders transmissions to audio offline and measures the keying of Morse
audio. Rendering lays each tone on the exact nominal timeline used by the
playback scheduler; the monitor detects the tone pulses in a recording and
rebuilds the Morse text from their timing, which makes it possible to check
a transmission without a sound card.
"""

import json
import sys
import wave
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy.ndimage import maximum_filter1d

from morse_code import DASH, DOT, LETTER_GAP, WORD_GAP, EncodedMessage, TimingProfile, decode
from tone_synth import TONE_FREQUENCY, tone_samples


@dataclass
class Pulse:
    """Represents a detected tone pulse."""
    timestamp: float  # Seconds since start of audio
    width: float      # Duration in seconds
    frequency: float  # Estimated tone frequency in Hz


def render_message(
    message: EncodedMessage,
    timing: Optional[TimingProfile] = None,
    sample_rate: int = 44100,
    frequency_hz: float = TONE_FREQUENCY
) -> np.ndarray:
    """
    Render a message to audio samples.

    Args:
        message: Encoded message
        timing: Timing profile (default: 80ms unit)
        sample_rate: Sample rate in Hz
        frequency_hz: Tone frequency in Hz

    Returns:
        Audio samples as float32 array, exactly the nominal duration long
    """
    timing = timing or TimingProfile()

    def silence(duration_ms):
        return np.zeros(int(round(duration_ms * sample_rate / 1000.0)), dtype=np.float32)

    audio_segments = []
    for token in message.tokens():
        if token == DOT:
            audio_segments.append(tone_samples(frequency_hz, timing.dot_ms, sample_rate))
            audio_segments.append(silence(timing.intra_gap_ms))
        elif token == DASH:
            audio_segments.append(tone_samples(frequency_hz, timing.dash_ms, sample_rate))
            audio_segments.append(silence(timing.intra_gap_ms))
        elif token == LETTER_GAP:
            audio_segments.append(silence(timing.letter_gap_ms))
        elif token == WORD_GAP:
            audio_segments.append(silence(timing.word_gap_ms))

    if audio_segments:
        return np.concatenate(audio_segments)
    return np.zeros(0, dtype=np.float32)


def save_wav(filename: str, audio: np.ndarray, sample_rate: int):
    """Save audio to a 16-bit mono WAV file."""
    audio_int = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)

    with wave.open(filename, 'wb') as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(audio_int.tobytes())


def load_wav(filename: str):
    """
    Read a 16-bit mono WAV file, as written by ``save_wav``.

    Returns:
        Tuple of (audio samples, sample rate)
    """
    with wave.open(filename, 'rb') as wav_file:
        if wav_file.getnchannels() != 1 or wav_file.getsampwidth() != 2:
            raise ValueError(f"{filename}: expected 16-bit mono audio")
        rate = wav_file.getframerate()
        frames = wav_file.readframes(wav_file.getnframes())

    audio = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    return audio, rate


class KeyingMonitor:
    """
    Detects tone pulses in Morse audio.

    The envelope is the running maximum of the rectified signal over one
    carrier period, so it follows the decaying tones closely without
    spreading their edges.
    """

    def __init__(
        self,
        sample_rate: int,
        expected_frequency: float = TONE_FREQUENCY,
        pulse_threshold_db: float = 40.0,
        min_pulse_width: float = 0.005,
        debug: bool = False
    ):
        """
        Initialize the monitor.

        Args:
            sample_rate: Sample rate of input audio in Hz
            expected_frequency: Tone frequency used to size the envelope window
            pulse_threshold_db: Pulse threshold in dB below the peak level
            min_pulse_width: Minimum pulse width in seconds
            debug: Enable debug output
        """
        self.sample_rate = sample_rate
        self.expected_frequency = expected_frequency
        self.pulse_threshold_db = pulse_threshold_db
        self.min_pulse_width = min_pulse_width
        self.debug = debug

        self.period_samples = max(1, int(round(sample_rate / expected_frequency)))

    def process_wav_file(self, wav_path: str, output_path: Optional[str] = None) -> List[Pulse]:
        """
        Detect pulses in a WAV file and output them as JSON lines.

        Args:
            wav_path: Path to input WAV file
            output_path: Path to output JSON lines file (stdout if None)

        Returns:
            List of detected pulses
        """
        audio, rate = load_wav(wav_path)
        if rate != self.sample_rate:
            print(f"Warning: WAV file sample rate ({rate}) doesn't match "
                  f"configured rate ({self.sample_rate})", file=sys.stderr)

        pulses = self.process_audio(audio)
        self._output_pulses(pulses, output_path)
        return pulses

    def process_audio(self, audio: np.ndarray) -> List[Pulse]:
        """
        Detect pulses in audio samples.

        Args:
            audio: Audio samples

        Returns:
            List of detected pulses in time order
        """
        audio = np.asarray(audio, dtype=np.float32)
        if len(audio) == 0:
            return []

        envelope = maximum_filter1d(np.abs(audio), size=self.period_samples)
        peak = np.max(envelope)
        if peak <= 0:
            return []

        threshold = peak * 10 ** (-self.pulse_threshold_db / 20)

        # Pad so pulses touching either end still produce both edges
        is_high = np.concatenate([[0], (envelope > threshold).astype(int), [0]])
        transitions = np.diff(is_high)
        on_indices = np.where(transitions == 1)[0]
        off_indices = np.where(transitions == -1)[0]

        pulses = []
        for on_idx, off_idx in zip(on_indices, off_indices):
            width = (off_idx - on_idx) / self.sample_rate
            if width < self.min_pulse_width:
                if self.debug:
                    print(f"Ignoring {width*1000:.1f}ms pulse at "
                          f"{on_idx / self.sample_rate:.3f}s", file=sys.stderr)
                continue

            pulses.append(Pulse(
                timestamp=on_idx / self.sample_rate,
                width=width,
                frequency=self._estimate_frequency(audio[on_idx:off_idx])
            ))

        if self.debug:
            print(f"Detected {len(pulses)} pulses (threshold {threshold:.4f})", file=sys.stderr)

        return pulses

    def _estimate_frequency(self, segment: np.ndarray) -> float:
        """
        Estimate the tone frequency of a pulse.

        Args:
            segment: Samples covering the pulse

        Returns:
            Frequency of the strongest spectral peak in Hz
        """
        # Zero-pad short pulses for finer bins
        fft_size = max(len(segment), self.sample_rate // 10)
        windowed = segment * np.hamming(len(segment))
        magnitude = np.abs(np.fft.rfft(windowed, n=fft_size))
        freq_bins = np.fft.rfftfreq(fft_size, 1.0 / self.sample_rate)
        return float(freq_bins[np.argmax(magnitude)])

    def _output_pulses(self, pulses: List[Pulse], output_path: Optional[str] = None):
        """
        Output pulses in JSON lines format.

        Args:
            pulses: List of pulses to output
            output_path: Path to output file (stdout if None)
        """
        lines = [json.dumps({
            'timestamp': pulse.timestamp,
            'width': pulse.width,
            'frequency': pulse.frequency
        }) for pulse in pulses]

        if output_path:
            with open(output_path, 'w') as f:
                for line in lines:
                    f.write(line + '\n')
        else:
            for line in lines:
                print(line)


def pulses_to_morse(pulses: List[Pulse], unit_ms: float = 80.0) -> str:
    """
    Rebuild Morse text from pulse timing.

    Args:
        pulses: Pulses in time order
        unit_ms: Timing unit in milliseconds

    Returns:
        Canonical Morse text ('.', '-', single spaces, ' / ' between words)
    """
    if not pulses:
        return ''

    unit = unit_ms / 1000.0
    groups = [[]]
    for i, pulse in enumerate(pulses):
        if i > 0:
            previous = pulses[i - 1]
            gap = pulse.timestamp - (previous.timestamp + previous.width)
            if gap >= 9 * unit:
                groups.append([WORD_GAP])
                groups.append([])
            elif gap >= 2.5 * unit:
                groups.append([])
        groups[-1].append(DOT if pulse.width < 2 * unit else DASH)

    return LETTER_GAP.join(''.join(group) for group in groups)


def main():
    """Command line interface for the keying monitor."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Measure Morse keying in a WAV file'
    )
    parser.add_argument(
        'input',
        help='Input WAV file'
    )
    parser.add_argument(
        '-o', '--output',
        help='Output JSON lines file for pulses (default: stdout)'
    )
    parser.add_argument(
        '-u', '--unit-ms',
        type=float,
        default=80.0,
        help='Timing unit in milliseconds (default: 80)'
    )
    parser.add_argument(
        '-f', '--frequency',
        type=float,
        default=TONE_FREQUENCY,
        help=f'Expected tone frequency in Hz (default: {TONE_FREQUENCY:.0f})'
    )
    parser.add_argument(
        '-p', '--pulse-threshold',
        type=float,
        default=40.0,
        help='Pulse threshold in dB below peak (default: 40.0)'
    )
    parser.add_argument(
        '-m', '--morse',
        action='store_true',
        help='Output the rebuilt Morse text instead of pulses'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    args = parser.parse_args()

    audio, sample_rate = load_wav(args.input)

    monitor = KeyingMonitor(
        sample_rate=sample_rate,
        expected_frequency=args.frequency,
        pulse_threshold_db=args.pulse_threshold,
        debug=args.debug
    )

    pulses = monitor.process_audio(audio)
    if args.morse:
        morse = pulses_to_morse(pulses, args.unit_ms)
        print(json.dumps({'morse': morse, 'text': decode(morse), 'pulses': len(pulses)}))
    else:
        monitor._output_pulses(pulses, args.output)


if __name__ == '__main__':
    main()
