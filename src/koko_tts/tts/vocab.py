"""
Kokoro Token Vocabulary.

The Kokoro v1.0 checkpoint was trained on a fixed symbol table: the pad
symbol, punctuation, ASCII letters and the IPA letters espeak emits. A
symbol's token id is its position in that table.

    >>> tokenize("hɪ")
    [50, 102]
    >>> tokens_to_phonemes([50, 102])
    'hɪ'

The apostrophe appears twice in the table; the later position wins, exactly
as when the table is turned into a dict.
"""
from __future__ import annotations

from typing import Dict, Iterable, List

PAD = "$"
PUNCTUATION = ';:,.!?¡¿—…"«»“” '
LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
LETTERS_IPA = "ɑɐɒæɓʙβɔɕçɗɖðʤəɘɚɛɜɝɞɟʄɡɠɢʛɦɧħɥʜɨɪʝɭɬɫɮʟɱɯɰŋɳɲɴøɵɸθœɶʘɹɺɾɻʀʁɽʂʃʈʧʉʊʋⱱʌɣɤʍχʎʏʑʐʒʔʡʕʢǀǁǂǃˈˌːˑʼʴʰʱʲʷˠˤ˞↓↑→↗↘'̩'ᵻ"

SYMBOLS = PAD + PUNCTUATION + LETTERS + LETTERS_IPA

PAD_TOKEN = 0
SILENCE_TOKEN = 30
MAX_CONTEXT = 512

VOCAB: Dict[str, int] = {symbol: index for index, symbol in enumerate(SYMBOLS)}
REVERSE_VOCAB: Dict[int, str] = {index: symbol for symbol, index in VOCAB.items()}


def tokenize(phonemes: str) -> List[int]:
    """Map each known character to its id. Unknown characters are dropped."""
    return [VOCAB[ch] for ch in phonemes if ch in VOCAB]


def tokens_to_phonemes(tokens: Iterable[int]) -> str:
    """Inverse of tokenize. Unknown ids are dropped."""
    return "".join(REVERSE_VOCAB[t] for t in tokens if t in REVERSE_VOCAB)


def padded_length(phonemes: str) -> int:
    """Token count after wrapping with the pad sentinel on both ends."""
    return len(tokenize(phonemes)) + 2
