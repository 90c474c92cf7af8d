#!/usr/bin/env python3
"""
Morse Code Encoder

This module converts plain text into the printable Morse convention used by
the telegraph chat: '.' for dot, '-' for dash, a single space between
characters and '/' for the gap between words. The same string is shown next
to each message and drives the playback scheduler, so encoding must be
stable for identical input.
"""

import json
import sys
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Tuple


DOT = '.'
DASH = '-'
LETTER_GAP = ' '
WORD_GAP = '/'

# International Morse Code, letters, digits and the word separator
SYMBOL_TABLE = MappingProxyType({
    'A': '.-', 'B': '-...', 'C': '-.-.', 'D': '-..', 'E': '.',
    'F': '..-.', 'G': '--.', 'H': '....', 'I': '..', 'J': '.---',
    'K': '-.-', 'L': '.-..', 'M': '--', 'N': '-.', 'O': '---',
    'P': '.--.', 'Q': '--.-', 'R': '.-.', 'S': '...', 'T': '-',
    'U': '..-', 'V': '...-', 'W': '.--', 'X': '-..-', 'Y': '-.--',
    'Z': '--..',
    '0': '-----', '1': '.----', '2': '..---', '3': '...--', '4': '....-',
    '5': '.....', '6': '-....', '7': '--...', '8': '---..', '9': '----.',
    ' ': WORD_GAP,
})

MORSE_CODE_DICT = MappingProxyType({
    symbol: char for char, symbol in SYMBOL_TABLE.items() if char != ' '
})

# Units of time each playback token occupies (tone + following gap)
TOKEN_UNITS = MappingProxyType({
    DOT: 2,
    DASH: 4,
    LETTER_GAP: 3,
    WORD_GAP: 7,
})


@dataclass(frozen=True)
class TimingProfile:
    """Transmission timing derived from a single unit duration."""
    unit_ms: float = 80.0

    def __post_init__(self):
        if self.unit_ms <= 0:
            raise ValueError(f"Unit duration must be positive, got {self.unit_ms}")

    @property
    def dot_ms(self) -> float:
        return self.unit_ms

    @property
    def dash_ms(self) -> float:
        return self.unit_ms * 3

    @property
    def intra_gap_ms(self) -> float:
        return self.unit_ms

    @property
    def letter_gap_ms(self) -> float:
        return self.unit_ms * 3

    @property
    def word_gap_ms(self) -> float:
        return self.unit_ms * 7

    def __str__(self):
        return (f"Dot: {self.dot_ms:.1f}ms, Dash: {self.dash_ms:.1f}ms, "
                f"Intra: {self.intra_gap_ms:.1f}ms, "
                f"Letter: {self.letter_gap_ms:.1f}ms, "
                f"Word: {self.word_gap_ms:.1f}ms")


@dataclass(frozen=True)
class EncodedMessage:
    """
    An encoded transmission.

    ``symbols`` holds one entry per source character: a mark string, the
    word-gap marker, or '' for a character with no Morse symbol.
    """
    symbols: Tuple[str, ...] = ()
    text: str = ''

    @classmethod
    def from_symbols(cls, symbols) -> 'EncodedMessage':
        symbols = tuple(symbols)
        return cls(symbols=symbols, text=LETTER_GAP.join(symbols))

    @classmethod
    def parse(cls, morse_text: str) -> 'EncodedMessage':
        """
        Build a message from an already encoded string.

        Args:
            morse_text: Morse text such as the ``morse`` field of a payload

        Returns:
            Encoded message whose text is exactly ``morse_text``
        """
        if not morse_text:
            return cls()
        return cls(symbols=tuple(morse_text.split(LETTER_GAP)), text=morse_text)

    def tokens(self) -> Iterator[str]:
        """Yield the playback tokens in transmission order."""
        for token in self.text:
            if token in TOKEN_UNITS:
                yield token

    @property
    def marks(self) -> int:
        """Number of audible dots and dashes."""
        return sum(1 for token in self.tokens() if token in (DOT, DASH))

    def duration_units(self) -> int:
        return sum(TOKEN_UNITS[token] for token in self.tokens())

    def nominal_duration_ms(self, unit_ms: float = 80.0) -> float:
        """
        Exact playback duration ignoring scheduling jitter.

        Args:
            unit_ms: Timing unit in milliseconds

        Returns:
            Total duration of all tones and gaps in milliseconds
        """
        return self.duration_units() * unit_ms

    def __str__(self):
        return self.text

    def __len__(self):
        return len(self.text)

    def __bool__(self):
        return bool(self.text)


def encode(text: str) -> EncodedMessage:
    """
    Encode text into Morse.

    Characters outside the symbol table contribute an empty group and are
    otherwise dropped.

    Args:
        text: Message text

    Returns:
        Encoded message
    """
    return EncodedMessage.from_symbols(
        SYMBOL_TABLE.get(char, '') for char in text.upper()
    )


def decode(morse_text: str) -> str:
    """
    Decode printable Morse back into text.

    Args:
        morse_text: Morse groups separated by spaces, '/' between words

    Returns:
        Decoded text, '?' for unknown groups
    """
    decoded_chars = []
    for group in str(morse_text).split(LETTER_GAP):
        if not group:
            continue
        if group == WORD_GAP:
            decoded_chars.append(' ')
        else:
            decoded_chars.append(MORSE_CODE_DICT.get(group, '?'))

    text = ''.join(decoded_chars)

    # Clean up multiple spaces
    while '  ' in text:
        text = text.replace('  ', ' ')
    return text.strip()


def main():
    """Command line interface for the encoder."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Encode text as Morse code (or decode with --decode)'
    )
    parser.add_argument(
        'text',
        nargs='*',
        help='Text to encode (default: read lines from stdin)'
    )
    parser.add_argument(
        '-d', '--decode',
        action='store_true',
        help='Decode Morse text instead of encoding'
    )
    parser.add_argument(
        '--unit-ms',
        type=float,
        default=80.0,
        help='Timing unit used for the duration field (default: 80)'
    )

    args = parser.parse_args()

    lines = [' '.join(args.text)] if args.text else [line.rstrip('\n') for line in sys.stdin]

    for line in lines:
        if args.decode:
            print(json.dumps({'morse': line, 'text': decode(line)}))
        else:
            message = encode(line)
            print(json.dumps({
                'text': line,
                'morse': message.text,
                'marks': message.marks,
                'duration_ms': message.nominal_duration_ms(args.unit_ms)
            }))


if __name__ == '__main__':
    main()
