"""Pattern-based parsing of free-text gallery queries.

Three ordered matcher lists are tried against the normalized (lowercased,
whitespace-collapsed) query; within a list the first matcher that returns a
capture wins:

* people matchers ("find all images where tina and dina are together"),
* exclusion matchers ("but not with ramesh") - always tried,
* tag matchers ("show me photos of a dog") - only when no people matcher hit.

Anything that matches nothing is left to keyword extraction.
"""

import re
from collections.abc import Callable

from offline_gallery.models import SearchPredicate

Matcher = Callable[[str], str | None]

_PREFIX = (
    r"(?:find|show|get|search)(?:\s+me)?(?:\s+all)?(?:\s+(?:the|my))?"
    r"\s+(?:images?|photos?|pictures?|pics?)"
)
_EXCLUSION_WORDS = r"(?:but\s+not|without|excluding)\b"
# Name lists never start with an article ("with a dog" is a tag query) and
# never run into an exclusion clause.
_NAMES = (
    r"(?!(?:a|an|the|some)\s)"
    r"([a-z](?:(?!\s+" + _EXCLUSION_WORDS + r")[a-z\s,'-])*?)"
)
_TAG = r"(?:(?:a|an|the|some)\s+)?([a-z][a-z\s-]*?)"
_CLAUSE_END = r"(?=\s+" + _EXCLUSION_WORDS + r"|\s*[.!?]?$)"
_EXCLUSION_CLAUSE = r"(?:\s+" + _EXCLUSION_WORDS + r".*?)?"
_EXCLUSION_END = r"(?=\s+in\s+(?:it|them)\b|\s*[.!?]?$)"

_ARTICLES = ("a", "an", "the", "some")
_CONNECTIVE_SPLIT = re.compile(r"\s*,\s*(?:and\s+)?|\s+and\s+")
_TOKEN_SPLIT = re.compile(r"[\s,.!?;:\"'()\[\]{}]+")

STOPWORDS = frozenset({
    # query verbs and filler
    "find", "show", "get", "search", "look", "looking", "display", "give", "list",
    "all", "any", "some", "every", "only", "together", "there", "where", "which",
    "who", "what", "that", "this", "these", "those", "containing", "featuring",
    # connectives and prepositions
    "and", "or", "but", "not", "without", "excluding", "with", "in", "on", "at",
    "of", "for", "to", "from", "by", "near", "into",
    # articles and auxiliaries
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "has", "have",
    # pronouns
    "me", "my", "i", "you", "your", "he", "she", "him", "her", "his", "they",
    "them", "their", "we", "us", "our", "it", "its",
    # domain words
    "image", "images", "photo", "photos", "picture", "pictures", "pic", "pics",
})


def _pattern(regex: str, join: str = " and ") -> Matcher:
    """Build a matcher returning the joined capture groups of ``regex``, or None."""
    compiled = re.compile(regex)

    def match(text: str) -> str | None:
        m = compiled.search(text)
        if m is None:
            return None
        parts = [g.strip() for g in m.groups() if g and g.strip()]
        return join.join(parts) if parts else None

    return match


PEOPLE_MATCHERS: list[Matcher] = [
    # "find all pics where tina is with dina"
    _pattern(_PREFIX + r"\s+where\s+" + _NAMES + r"\s+(?:is|are)\s+(?:together\s+)?with\s+"
             + _NAMES + _CLAUSE_END),
    # "find all images where samantha and tina are together"
    _pattern(_PREFIX + r"\s+where\s+" + _NAMES + r"\s+(?:is|are)\b"),
    # "find all images where samantha appears"
    _pattern(_PREFIX + r"\s+where\s+" + _NAMES + r"\s+(?:appears?|shows?\s+up)\b"),
    # "find all images with samantha in it", "... with samantha but not ramesh in it"
    _pattern(_PREFIX + r"\s+(?:with|containing|featuring|of)\s+" + _NAMES + _EXCLUSION_CLAUSE
             + r"\s+in\s+(?:it|them|the\s+(?:picture|photo|image))\b"),
]

EXCLUSION_MATCHERS: list[Matcher] = [
    _pattern(r"\bbut\s+not\s+(?:with\s+)?" + _NAMES + _EXCLUSION_END),
    _pattern(r"\bwithout\s+" + _NAMES + _EXCLUSION_END),
    _pattern(r"\bexcluding\s+" + _NAMES + _EXCLUSION_END),
]

TAG_MATCHERS: list[Matcher] = [
    # "find all images with a dog in it", "show me photos of the beach"
    _pattern(_PREFIX + r"\s+(?:with|containing|featuring|of)\s+" + _TAG
             + r"(?:\s+in\s+(?:it|them))?" + _CLAUSE_END),
    # "search for bicycles"
    _pattern(r"\bsearch\s+for\s+" + _TAG + _CLAUSE_END),
    # "photos of a cat"
    _pattern(r"^(?:images?|photos?|pictures?|pics?)\s+(?:with|containing|of)\s+" + _TAG
             + _CLAUSE_END),
]


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(text.lower().split())


def first_match(matchers: list[Matcher], text: str) -> str | None:
    """Return the capture of the first matcher that matches ``text``."""
    for matcher in matchers:
        captured = matcher(text)
        if captured:
            return captured
    return None


def split_names(text: str) -> tuple[list[str], bool]:
    """Split a captured name list on " and " / commas.

    Returns the names and whether a connective was present.
    """
    had_connective = " and " in f" {text} " or "," in text
    names = [n.strip() for n in _CONNECTIVE_SPLIT.split(text)]
    return [n for n in names if n], had_connective


def strip_articles(text: str) -> str:
    """Drop leading articles ("a", "an", "the", "some")."""
    words = text.split()
    while words and words[0] in _ARTICLES:
        words = words[1:]
    return " ".join(words)


def parse_query(text: str) -> SearchPredicate:
    """Parse ``text`` into a best-effort SearchPredicate.

    Unparseable input yields an empty predicate, never an error.
    """
    query = normalize(text)
    predicate = SearchPredicate()
    if not query:
        return predicate

    people_text = first_match(PEOPLE_MATCHERS, query)
    if people_text:
        names, had_connective = split_names(people_text)
        predicate.people = names
        predicate.require_all = had_connective

    excluded_text = first_match(EXCLUSION_MATCHERS, query)
    if excluded_text:
        predicate.excluded_people, _ = split_names(excluded_text)

    if not predicate.people:
        tag_text = first_match(TAG_MATCHERS, query)
        if tag_text:
            tag = strip_articles(tag_text)
            if tag:
                predicate.tags = [tag]

    return predicate


def extract_keywords(text: str) -> list[str]:
    """Lowercased query terms without stopwords, single characters or duplicates."""
    keywords: list[str] = []
    for token in _TOKEN_SPLIT.split(text.lower()):
        if len(token) <= 1 or token in STOPWORDS or token in keywords:
            continue
        keywords.append(token)
    return keywords
