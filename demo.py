#!/usr/bin/env python3
"""
Demo script for the Morse Transmitter

Encodes a few messages, renders them to WAV files and reads the keying back
with the monitor.
"""

import json
import os
import subprocess
import sys
import tempfile


def demo_message(text, wav_file, description=""):
    """Demonstrate the transmitter and monitor on one message."""
    print("\n" + "=" * 70)
    print(f"  {description}")
    print("=" * 70)
    print(f"Message: {text!r}\n")

    # Encode and render
    print("1. Transmitter:")
    print("   Encoding and rendering to WAV...")

    transmit_cmd = [sys.executable, 'morse_transmitter.py', text, '--wav', wav_file]
    transmit_result = subprocess.run(
        transmit_cmd,
        capture_output=True,
        text=True
    )

    if transmit_result.returncode != 0:
        print(f"   ✗ Error: {transmit_result.stderr}")
        return

    payload = json.loads(transmit_result.stdout)
    print(f"   ✓ Morse: {payload['morse']}\n")

    # Measure keying
    print("2. Keying Monitor:")
    print("   Detecting pulses and rebuilding Morse...")

    monitor_cmd = [sys.executable, 'keying_monitor.py', wav_file, '--morse']
    monitor_result = subprocess.run(
        monitor_cmd,
        capture_output=True,
        text=True
    )

    if monitor_result.returncode != 0:
        print(f"   ✗ Error: {monitor_result.stderr}")
        return

    measured = json.loads(monitor_result.stdout)
    print(f"   ✓ Detected {measured['pulses']} pulses\n")

    print("3. Results:")
    print("-" * 70)
    match = "✓" if measured['morse'] == payload['morse'] else "✗"
    print(f"   {match} Heard: {measured['morse']}  \"{measured['text']}\"")
    print()


def main():
    """Run demo."""
    print("\n" + "*" * 70)
    print("*" + " " * 68 + "*")
    print("*" + "  Morse Transmitter - Demo".center(68) + "*")
    print("*" + " " * 68 + "*")
    print("*" * 70)

    workdir = tempfile.mkdtemp()
    demos = [
        ('SOS', 'Sample 1: Distress call'),
        ('CQ CQ DE MARCONI', 'Sample 2: CQ Call'),
    ]

    for i, (text, description) in enumerate(demos, 1):
        demo_message(text, os.path.join(workdir, f'demo{i}.wav'), description)

    print("=" * 70)
    print("  Demo Complete!")
    print("=" * 70)
    print(f"\nWAV files written to {workdir}")
    print("\nTo hear your own message:")
    print("  python morse_transmitter.py \"your message\" --play")
    print()


if __name__ == '__main__':
    main()
