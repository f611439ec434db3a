"""Character filters applied to documents before tokenizing.

Each filter is a compiled pattern of the characters to *remove*; ``sanitize``
strips them from a string.
"""

import re

only_words_and_numbers = re.compile(r"[^A-Za-z0-9 ]")
only_words = re.compile(r"[^A-Za-z ]")
only_letters = re.compile(r"[^A-Za-z]")


def sanitize(text: str, pattern: re.Pattern = only_words_and_numbers) -> str:
    return pattern.sub("", text)
