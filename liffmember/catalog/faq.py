from typing import Optional

from pydantic import BaseModel


class FAQ(BaseModel):
    id: str = ""
    question: str
    answer: str
    category: str = ""
    keywords: list[str] = []


def query_words(query: str) -> list[str]:
    return query.lower().split()


def score_faq(words: list[str], faq: FAQ) -> float:
    """Keyword hits count 2, question hits 1 and answer hits 0.5 per word.

    Keyword matching goes both ways (word in keyword or keyword in word) since
    Thai has no word boundaries to split on.
    """
    keywords = [k.lower() for k in faq.keywords]
    question = faq.question.lower()
    answer = faq.answer.lower()

    score = 0.0
    for word in words:
        if any(word in k or k in word for k in keywords):
            score += 2
        if word in question:
            score += 1
        if word in answer:
            score += 0.5
    return score


def match_threshold(words: list[str]) -> float:
    if len(words) == 1 and len(words[0]) >= 2:
        return 0.5
    return 2


def best_faq(query: str, faqs: list[FAQ]) -> Optional[FAQ]:
    """Return the highest scoring FAQ if it clears the threshold."""
    words = query_words(query)
    if not words or not faqs:
        return None

    best: Optional[FAQ] = None
    best_score = 0.0
    for faq in faqs:
        score = score_faq(words, faq)
        # Strictly greater: on ties the earlier document stays
        if best is None or score > best_score:
            best, best_score = faq, score

    if best is not None and best_score >= match_threshold(words):
        return best
    return None
