"""Evaluate parsed queries against the annotation index."""

import logging

import duckdb

from offline_gallery.config import EngineConfig
from offline_gallery.manager.person_repository import find_persons_by_name
from offline_gallery.manager.repository import get_images_by_ids, get_images_by_tag
from offline_gallery.models import SearchPredicate, SearchResult
from offline_gallery.recognition.resolver import IdentityResolver
from offline_gallery.search.parser import extract_keywords, parse_query

logger = logging.getLogger(__name__)

PEOPLE_RELEVANCE = 1.0


def merge_results(*result_lists: list[SearchResult]) -> list[SearchResult]:
    """Union result lists, keeping each image's highest relevance.

    Output is sorted by descending relevance; equal relevance keeps the order
    in which images were first discovered.
    """
    merged: dict[int, SearchResult] = {}
    for results in result_lists:
        for result in results:
            current = merged.get(result.image.id)
            if current is None:
                merged[result.image.id] = SearchResult(result.image, result.relevance)
            elif result.relevance > current.relevance:
                current.relevance = result.relevance
    return sorted(merged.values(), key=lambda r: -r.relevance)


class RetrievalEngine:
    """Answer structured or free-text queries with ranked images."""

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        config: EngineConfig | None = None,
        resolver: IdentityResolver | None = None,
    ) -> None:
        self.conn = conn
        self.config = config or EngineConfig()
        self.resolver = resolver or IdentityResolver(conn, self.config)

    def search(
        self, query: str | SearchPredicate, limit: int | None = None
    ) -> list[SearchResult]:
        """Search by free text or by an already parsed predicate."""
        if isinstance(query, SearchPredicate):
            predicate, text = query, ""
        else:
            predicate, text = parse_query(query), query
        logger.info("Search %r -> %s", text, predicate)

        # Excluded people only filter people searches.
        if predicate.people:
            results = self.search_by_people(
                predicate.people, predicate.require_all, predicate.excluded_people
            )
        elif predicate.tags:
            results = self.search_by_tags(predicate.tags)
        else:
            results = self.generic_search(extract_keywords(text))

        if limit is not None:
            results = results[:limit]
        return results

    def search_by_tags(self, tags: list[str]) -> list[SearchResult]:
        """Images whose tags contain any of ``tags``; relevance is the tag confidence."""
        per_tag: list[list[SearchResult]] = []
        for tag in tags:
            rows = get_images_by_tag(self.conn, tag)
            per_tag.append([SearchResult(image, relevance) for image, relevance in rows])
        return merge_results(*per_tag)

    def search_by_people(
        self,
        names: list[str],
        require_all: bool = False,
        excluded: list[str] | None = None,
    ) -> list[SearchResult]:
        """Images showing the named people, minus images showing any excluded person.

        A name may match several persons (case-insensitive substring); all of
        them are candidates. With ``require_all`` every matched person must be
        present in the image; otherwise any. Names matching nobody add nothing.
        """
        person_ids = [pid for name in names for pid in self._person_ids(name)]
        if require_all:
            image_ids = self.resolver.images_containing_all(person_ids)
        else:
            image_ids = self.resolver.images_containing_any(person_ids)

        excluded_ids = [pid for name in excluded or [] for pid in self._person_ids(name)]
        if excluded_ids:
            image_ids = self.resolver.images_excluding(excluded_ids, image_ids)

        images = get_images_by_ids(self.conn, sorted(image_ids))
        return [SearchResult(image, PEOPLE_RELEVANCE) for image in images]

    def generic_search(self, keywords: list[str]) -> list[SearchResult]:
        """Keyword fallback: tag matches and person-name matches, tags first."""
        if not keywords:
            return []
        tag_results = self.search_by_tags(keywords)
        people_results = self.search_by_people(keywords)
        return merge_results(tag_results, people_results)

    def _person_ids(self, name: str) -> list[int]:
        return [p.id for p in find_persons_by_name(self.conn, name)]
