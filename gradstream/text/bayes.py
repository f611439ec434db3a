"""
bayes.py
────────
Online multinomial naive Bayes text classifier.

Math recap
──────────
    Class(x) = argmax_c { log P(y = c) + Σ_w log P(w | y = c) }

    P(y = c)      = docs of class c / docs seen
    P(w | y = c)  = (count(w, c) + 1) / (seen(w) + |V|)      # Laplace

Words never seen in training are ignored at prediction time; words shorter
than three characters are ignored during learning.

Concurrency
───────────
Learning runs on the stream consumer thread while predict() may be called
from anywhere.  Every read and write of the word table, the class counts and
the priors goes through one re-entrant lock, and a whole document is folded
in under a single acquisition, so predict() never sees half a document.
"""

import math
import re
import threading
from dataclasses import dataclass, field
from typing import Iterator, Protocol

from loguru import logger

from gradstream.core import persistence
from gradstream.core.errors import InvalidConfigurationError, InvalidDatapointError
from gradstream.core.model import TextDatapoint
from gradstream.core.stream import DataStream, ErrorChannel, consume
from gradstream.text.sanitize import only_words_and_numbers, sanitize

MIN_WORD_LENGTH = 3


class Tokenizer(Protocol):
    def tokenize(self, sentence: str) -> list[str]: ...


class SimpleTokenizer:
    """Lower-case the sentence and split it on a fixed separator."""

    def __init__(self, split_on: str = " "):
        self.split_on = split_on

    def tokenize(self, sentence: str) -> list[str]:
        return sentence.lower().split(self.split_on)


@dataclass
class Word:
    count: list[int]
    seen: int = 0
    docs_seen: int = 0

    def copy(self) -> "Word":
        return Word(list(self.count), self.seen, self.docs_seen)


@dataclass
class ConcurrentWordMap:
    """dict[str, Word] guarded by a re-entrant lock; get() hands out copies."""

    words: dict[str, Word] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def get(self, word: str) -> Word | None:
        with self.lock:
            entry = self.words.get(word)
            return None if entry is None else entry.copy()

    def set(self, word: str, entry: Word) -> None:
        with self.lock:
            self.words[word] = entry

    def __len__(self) -> int:
        with self.lock:
            return len(self.words)

    def __contains__(self, word: str) -> bool:
        with self.lock:
            return word in self.words

    def __iter__(self) -> Iterator[str]:
        with self.lock:
            return iter(list(self.words))


class NaiveBayes:
    """Multinomial naive Bayes trained only through a DataStream of TextDatapoints.

    Parameters
    ----------
    stream : DataStream | None
    classes : int, default=2
        Labels must be integers in [0, classes).
    sanitizer : re.Pattern, default=only_words_and_numbers
        Characters matching the pattern are stripped before tokenizing.
    tokenizer : Tokenizer, default=SimpleTokenizer()
    """

    def __init__(
        self,
        stream: DataStream | None = None,
        classes: int = 2,
        sanitizer: re.Pattern = only_words_and_numbers,
        tokenizer: Tokenizer | None = None,
    ):
        if classes < 2:
            raise InvalidConfigurationError(f"classes must be ≥ 2, got {classes}.")

        self.words = ConcurrentWordMap()
        self.count: list[int] = [0] * classes
        self.probabilities: list[float] = [0.0] * classes
        self.document_count = 0
        self.dict_count = 0

        self.sanitizer = sanitizer
        self.tokenizer: Tokenizer = tokenizer or SimpleTokenizer()
        self._stream = stream

    @property
    def classes(self) -> int:
        return len(self.count)

    def update_stream(self, stream: DataStream) -> None:
        self._stream = stream

    def update_sanitizer(self, sanitizer: re.Pattern) -> None:
        self.sanitizer = sanitizer

    def update_tokenizer(self, tokenizer: Tokenizer) -> None:
        self.tokenizer = tokenizer

    def tokens(self, document: str) -> list[str]:
        """Sanitize then tokenize *document* the way learning does."""
        return self.tokenizer.tokenize(sanitize(document, self.sanitizer))

    # ── prediction ────────────────────────────────────────────────────────

    def _log_scores(self, document: str) -> list[float]:
        tokens = self.tokens(document)
        with self.words.lock:
            entries = [entry for entry in map(self.words.get, tokens) if entry is not None]
            priors = list(self.probabilities)
            vocabulary = self.dict_count

        scores = [math.log(p) if p > 0 else -math.inf for p in priors]
        for entry in entries:
            for c in range(len(scores)):
                scores[c] += math.log((entry.count[c] + 1) / (entry.seen + vocabulary))
        return scores

    def predict(self, document: str) -> int:
        """Most likely class; safe to call while online_learn is running."""
        scores = self._log_scores(document)
        return max(range(len(scores)), key=lambda c: (scores[c], -c))

    def probability(self, document: str) -> tuple[int, float]:
        """(most likely class, its posterior probability)."""
        scores = self._log_scores(document)
        best = max(range(len(scores)), key=lambda c: (scores[c], -c))
        if scores[best] == -math.inf:
            return best, 1.0 / len(scores)
        total = sum(math.exp(s - scores[best]) for s in scores)
        return best, 1.0 / total

    # ── online learning ───────────────────────────────────────────────────

    def online_learn(
        self,
        errors: ErrorChannel,
        on_update=None,
        stop_on_divergence: bool = False,
    ) -> int:
        """Fold every document of the attached stream into the model.

        *on_update* receives ``(class, documents seen)`` after each document.
        """
        logger.info("training multinomial naive Bayes | method=online classes={}", self.classes)
        return consume(
            self._stream,
            errors,
            self.update,
            on_update=on_update,
            name="naive-bayes",
            stop_on_divergence=stop_on_divergence,
        )

    def update(self, point: TextDatapoint) -> tuple[int, int]:
        if not isinstance(point, TextDatapoint):
            raise InvalidDatapointError(f"naive Bayes learns from TextDatapoint, got {type(point).__name__}")
        label = float(point.y)
        if not label.is_integer():
            raise InvalidDatapointError(f"document class must be an integer, got {point.y}")
        if not 0 <= label < self.classes:
            raise InvalidDatapointError(f"document class {point.y} is outside [0, {self.classes})")
        c = int(label)

        tokens = [w for w in self.tokens(point.x) if len(w) >= MIN_WORD_LENGTH]
        with self.words.lock:
            self.count[c] += 1
            self.document_count += 1
            self.probabilities = [n / self.document_count for n in self.count]

            for token in tokens:
                entry = self.words.get(token)
                if entry is None:
                    entry = Word([0] * self.classes)
                    self.dict_count += 1
                entry.count[c] += 1
                entry.seen += 1
                self.words.set(token, entry)

            for token in set(tokens):
                entry = self.words.get(token)
                entry.docs_seen += 1
                self.words.set(token, entry)

            return c, self.document_count

    # ── state export / import ─────────────────────────────────────────────

    def get_state(self) -> dict:
        with self.words.lock:
            return {
                "words": {
                    w: {"count": e.count, "seen": e.seen, "docs_seen": e.docs_seen}
                    for w, e in self.words.words.items()
                },
                "count": list(self.count),
                "probabilities": list(self.probabilities),
                "document_count": self.document_count,
                "vocabulary_size": self.dict_count,
            }

    def set_state(self, state: dict) -> None:
        with self.words.lock:
            self.words.words = {
                w: Word(list(e["count"]), int(e["seen"]), int(e["docs_seen"]))
                for w, e in state["words"].items()
            }
            self.count = [int(n) for n in state["count"]]
            self.probabilities = [float(p) for p in state["probabilities"]]
            self.document_count = int(state["document_count"])
            self.dict_count = int(state["vocabulary_size"])

    def persist_to_file(self, path) -> None:
        persistence.write_json(path, self.get_state())

    def restore_from_file(self, path) -> None:
        self.set_state(persistence.read_json(path))

    def __str__(self) -> str:
        return (
            "h(θ) = argmax_c{log(P(y = c)) + Σlog(P(x|y = c))}\n"
            f"\tClasses: {self.classes}\n"
            f"\tDocuments evaluated in model: {self.document_count}\n"
            f"\tWords evaluated in model: {self.dict_count}"
        )
