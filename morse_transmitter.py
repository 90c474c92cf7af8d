#!/usr/bin/env python3
"""
Morse Transmitter

Command line front end: encodes a message, prints the payload that would be
stored for it as a JSON line, and optionally sounds it on the audio output
or renders it to a WAV file.

    python morse_transmitter.py "CQ TEST" --play
    python morse_transmitter.py SOS --wav sos.wav --unit-ms 60
"""

import asyncio
import json
import sys

from audio_resource import AudioResourceManager, SoundDeviceOutput
from keying_monitor import render_message, save_wav
from morse_code import TimingProfile, encode
from playback import PlaybackScheduler, PlaybackState
from tone_synth import TONE_FREQUENCY, ToneSynthesizer
from transmitter import build_payload


async def play_message(message, timing, sample_rate, frequency_hz, debug=False):
    """Play a message on the sound card and return the playback result."""
    manager = AudioResourceManager(
        device_factory=lambda: SoundDeviceOutput(sample_rate=sample_rate),
        debug=debug
    )
    scheduler = PlaybackScheduler(
        message,
        timing=timing,
        manager=manager,
        synthesizer=ToneSynthesizer(sample_rate=sample_rate, debug=debug),
        frequency_hz=frequency_hz,
        debug=debug
    )
    try:
        return await scheduler.run()
    finally:
        manager.suspend()


def main():
    """Command line interface for the transmitter."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Encode a message as Morse code and transmit it'
    )
    parser.add_argument(
        'text',
        nargs='+',
        help='Message text'
    )
    parser.add_argument(
        '--username',
        help='Sender name (default: Anonymous)'
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
        help=f'Tone frequency in Hz (default: {TONE_FREQUENCY:.0f})'
    )
    parser.add_argument(
        '-s', '--sample-rate',
        type=int,
        default=44100,
        help='Audio sample rate in Hz (default: 44100)'
    )
    parser.add_argument(
        '--play',
        action='store_true',
        help='Play the message on the default audio output'
    )
    parser.add_argument(
        '--wav',
        help='Render the message to this WAV file'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    args = parser.parse_args()

    try:
        timing = TimingProfile(args.unit_ms)
        payload = build_payload(' '.join(args.text), args.username)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(payload))

    message = encode(payload['message'])
    if args.debug:
        print(f"Timing: {timing}", file=sys.stderr)
        print(f"Nominal duration: {message.nominal_duration_ms(timing.unit_ms):.0f}ms",
              file=sys.stderr)

    if args.wav:
        audio = render_message(message, timing, args.sample_rate, args.frequency)
        save_wav(args.wav, audio, args.sample_rate)
        if args.debug:
            print(f"Wrote {len(audio)} samples to {args.wav}", file=sys.stderr)

    if args.play:
        result = asyncio.run(play_message(
            message, timing, args.sample_rate, args.frequency, args.debug
        ))
        if result.state is PlaybackState.FAULTED:
            print(f"Playback failed: {result.error}", file=sys.stderr)
            return 1
        if result.tones_skipped:
            print(f"Warning: {result.tones_skipped} tones could not be played",
                  file=sys.stderr)

    return 0


if __name__ == '__main__':
    sys.exit(main())
