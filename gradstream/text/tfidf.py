"""
tfidf.py
────────
Term frequency × inverse document frequency over the word table of a trained
NaiveBayes model.  Nothing is learned here: the classifier already counts
how many documents each word appeared in, which is all IDF needs.

    tf(w, d)    = 0.5 + 0.5 · count(w, d) / max_{w′ ∈ d} count(w′, d)
    idf(w)      = log(N) − log(1 + docs containing w)          N = documents seen
    tfidf(w, d) = tf(w, d) · idf(w)

A word that shows up in almost every document scores ≤ 0; a word the model
has never seen gets the full log(N).

Usage
─────
    bayes = NaiveBayes(stream)
    ...                                   # online_learn until the stream closes
    TFIDF(bayes).most_important_words("some new document", n=5)
"""

import math
from collections import Counter
from typing import NamedTuple

from gradstream.text.bayes import MIN_WORD_LENGTH, NaiveBayes


class ScoredWord(NamedTuple):
    word : str
    score: float


class TFIDF:
    """Keyword scoring backed by a (possibly still learning) NaiveBayes model.

    Parameters
    ----------
    model : NaiveBayes
        Supplies the tokenizer, the sanitizer and the document frequencies.
    """

    def __init__(self, model: NaiveBayes):
        self.model = model

    def _counts(self, document: str) -> Counter:
        return Counter(w for w in self.model.tokens(document) if len(w) >= MIN_WORD_LENGTH)

    def term_frequency(self, word: str, document: str) -> float:
        counts = self._counts(document)
        word = word.lower()
        if word not in counts:
            return 0.0
        return 0.5 + 0.5 * counts[word] / max(counts.values())

    def inverse_document_frequency(self, word: str) -> float:
        with self.model.words.lock:
            documents = self.model.document_count
            entry = self.model.words.get(word.lower())
        if documents == 0:
            return 0.0
        containing = 0 if entry is None else entry.docs_seen
        return math.log(documents) - math.log(1 + containing)

    def tfidf(self, word: str, document: str) -> float:
        return self.term_frequency(word, document) * self.inverse_document_frequency(word)

    def most_important_words(self, document: str, n: int = 5) -> list[ScoredWord]:
        """The *n* highest-scoring distinct words of *document*, best first (ties by word)."""
        if n < 1:
            raise ValueError("n must be ≥ 1.")
        counts = self._counts(document)
        if not counts:
            return []
        top = max(counts.values())
        scored = [
            ScoredWord(w, (0.5 + 0.5 * c / top) * self.inverse_document_frequency(w))
            for w, c in counts.items()
        ]
        scored.sort(key=lambda s: (-s.score, s.word))
        return scored[:n]

    def __repr__(self) -> str:
        return f"TFIDF(documents={self.model.document_count}, vocabulary={self.model.dict_count})"
