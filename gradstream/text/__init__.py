from gradstream.text.bayes import ConcurrentWordMap, NaiveBayes, SimpleTokenizer, Word
from gradstream.text.sanitize import only_letters, only_words, only_words_and_numbers, sanitize
from gradstream.text.tfidf import TFIDF, ScoredWord
