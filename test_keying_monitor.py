#!/usr/bin/env python3
"""
Test script for the keying monitor

Renders transmissions to audio and checks that the monitor recovers the
pulses and the Morse text from their timing.
"""

import json
import os
import sys
import tempfile
import wave

import numpy as np
import pytest

from keying_monitor import KeyingMonitor, Pulse, load_wav, pulses_to_morse, render_message, save_wav
from morse_code import TimingProfile, decode, encode


SAMPLE_RATE = 8000
UNIT_MS = 20.0


def render(text):
    return render_message(encode(text), TimingProfile(UNIT_MS), SAMPLE_RATE)


def test_render_length():
    """Rendered audio lasts exactly the nominal duration."""
    for text in ["SOS", "A B", "73", "A#B"]:
        message = encode(text)
        audio = render(text)
        expected = int(round(message.nominal_duration_ms(UNIT_MS) * SAMPLE_RATE / 1000))
        assert len(audio) == expected, text
        assert audio.dtype == np.float32


def test_render_empty():
    audio = render("")
    assert len(audio) == 0

    monitor = KeyingMonitor(sample_rate=SAMPLE_RATE)
    assert monitor.process_audio(audio) == []
    assert pulses_to_morse([], UNIT_MS) == ''


def test_render_silence_only():
    audio = render("##")
    assert len(audio) == int(3 * UNIT_MS * SAMPLE_RATE / 1000)
    assert not np.any(audio)
    assert KeyingMonitor(sample_rate=SAMPLE_RATE).process_audio(audio) == []


def test_single_signal():
    """Detect the pulses of SOS."""
    print("=" * 60)
    print("Test: SOS pulse detection")
    print("=" * 60)

    audio = render("SOS")
    monitor = KeyingMonitor(sample_rate=SAMPLE_RATE)
    pulses = monitor.process_audio(audio)

    print(f"Detected {len(pulses)} pulses")
    for i, pulse in enumerate(pulses, 1):
        print(f"  {i}. Time: {pulse.timestamp:.3f}s, "
              f"Width: {pulse.width:.3f}s, "
              f"Freq: {pulse.frequency:.1f}Hz")

    assert len(pulses) == 9
    widths = [round(p.width / (UNIT_MS / 1000)) for p in pulses]
    assert widths == [1, 1, 1, 3, 3, 3, 1, 1, 1]
    assert all(abs(p.frequency - 600.0) < 20.0 for p in pulses)

    # First pulse starts the transmission, the second follows a dot and a gap
    assert pulses[0].timestamp < 0.002
    assert abs(pulses[1].timestamp - 2 * UNIT_MS / 1000) < 0.002

    assert pulses_to_morse(pulses, UNIT_MS) == "... --- ..."


def test_word_gaps():
    for text in ["A B", "CQ DE W1AW", "73 ES GL"]:
        pulses = KeyingMonitor(sample_rate=SAMPLE_RATE).process_audio(render(text))
        morse = pulses_to_morse(pulses, UNIT_MS)
        assert morse == encode(text).text, text
        assert decode(morse) == text


def test_unmapped_characters_keep_letters_apart():
    pulses = KeyingMonitor(sample_rate=SAMPLE_RATE).process_audio(render("A#B"))
    assert pulses_to_morse(pulses, UNIT_MS) == ".- -..."


def test_other_frequency():
    audio = render_message(encode("K"), TimingProfile(UNIT_MS), SAMPLE_RATE, frequency_hz=800.0)
    monitor = KeyingMonitor(sample_rate=SAMPLE_RATE, expected_frequency=800.0)
    pulses = monitor.process_audio(audio)
    assert len(pulses) == 3
    assert all(abs(p.frequency - 800.0) < 20.0 for p in pulses)


def test_pulses_to_morse_thresholds():
    unit = UNIT_MS / 1000
    pulses = [
        Pulse(timestamp=0.0, width=unit, frequency=600.0),
        Pulse(timestamp=2 * unit, width=3 * unit, frequency=600.0),
        Pulse(timestamp=9 * unit, width=unit, frequency=600.0),
        Pulse(timestamp=24 * unit, width=3 * unit, frequency=600.0),
    ]
    assert pulses_to_morse(pulses, UNIT_MS) == ".- . / -"


def test_wav_file():
    """Write a rendered transmission to WAV and read it back through the monitor."""
    workdir = tempfile.mkdtemp()
    test_file = os.path.join(workdir, 'test_cq.wav')
    output_file = os.path.join(workdir, 'test_cq_pulses.json')

    audio = render("CQ")
    save_wav(test_file, audio, SAMPLE_RATE)

    loaded, rate = load_wav(test_file)
    assert rate == SAMPLE_RATE
    assert len(loaded) == len(audio)
    assert np.max(np.abs(loaded - audio)) < 1e-3

    monitor = KeyingMonitor(sample_rate=SAMPLE_RATE)
    pulses = monitor.process_wav_file(test_file, output_file)

    with open(output_file, 'r') as f:
        detected = [json.loads(line) for line in f]

    assert len(detected) == len(pulses) == encode("CQ").marks
    assert set(detected[0]) == {'timestamp', 'width', 'frequency'}
    assert pulses_to_morse(pulses, UNIT_MS) == "-.-. --.-"


def test_load_wav_rejects_other_formats():
    """Only the 16-bit mono format written by save_wav is read back."""
    test_file = os.path.join(tempfile.mkdtemp(), 'stereo.wav')
    with wave.open(test_file, 'wb') as wav_file:
        wav_file.setnchannels(2)
        wav_file.setsampwidth(2)
        wav_file.setframerate(SAMPLE_RATE)
        wav_file.writeframes(np.zeros(200, dtype=np.int16).tobytes())

    with pytest.raises(ValueError):
        load_wav(test_file)


def main():
    """Run all tests."""
    print("\n")
    print("*" * 60)
    print("* Keying Monitor Test Suite")
    print("*" * 60)
    print("\n")

    try:
        test_render_length()
        test_render_empty()
        test_render_silence_only()
        test_single_signal()
        test_word_gaps()
        test_unmapped_characters_keep_letters_apart()
        test_other_frequency()
        test_pulses_to_morse_thresholds()
        test_wav_file()
        test_load_wav_rejects_other_formats()

        print("=" * 60)
        print("All tests completed!")
        print("=" * 60)

    except Exception as e:
        print(f"\nError during testing: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
