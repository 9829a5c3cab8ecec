# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Declarative collection queries: filter / sort / projection / skip / limit / count.

The raw values arrive as query-string text (``where``, ``sort``, ``select``,
``skip``, ``limit``, ``count``); structured ones are JSON. The filter is handed
to the store untouched.
"""
import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from taskapi.core.errors import InvalidQuery
from taskapi.core.logging import get_logger
from taskapi.metrics import QUERIES
from taskapi.repositories.document_repository import DocumentRepository

logger = get_logger(__name__)

_TRUE = ("true", "1", "yes")
_FALSE = ("false", "0", "no", "")


class QueryDescriptor(BaseModel):
    filter: Optional[Dict[str, Any]] = None
    sort: Optional[Dict[str, Any]] = None
    projection: Optional[Any] = None
    skip: Optional[int] = None
    limit: Optional[int] = None
    count: bool = False


def parse_json_param(raw: Optional[str], name: str) -> Any:
    if raw is None or raw.strip() == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidQuery(f"Invalid JSON in '{name}' parameter") from exc


def _parse_object(raw: Optional[str], name: str) -> Optional[Dict[str, Any]]:
    value = parse_json_param(raw, name)
    if value is not None and not isinstance(value, dict):
        raise InvalidQuery(f"'{name}' must be a JSON object")
    return value


def _parse_non_negative(raw: Optional[str], name: str) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidQuery(f"'{name}' must be a non-negative integer") from exc
    if value < 0:
        raise InvalidQuery(f"'{name}' must be a non-negative integer")
    return value


def _parse_flag(raw: Optional[str], name: str) -> bool:
    if raw is None:
        return False
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise InvalidQuery(f"'{name}' must be true or false")


def parse_projection_param(raw: Optional[str]) -> Optional[Union[Dict[str, Any], List[str]]]:
    value = parse_json_param(raw, "select")
    if value is not None and not isinstance(value, (dict, list)):
        raise InvalidQuery("'select' must be a JSON object or array")
    return value


class QueryEngine:
    def parse(self, where: Optional[str] = None, sort: Optional[str] = None,
              select: Optional[str] = None, skip: Optional[str] = None,
              limit: Optional[str] = None, count: Optional[str] = None) -> QueryDescriptor:
        return QueryDescriptor(
            filter=_parse_object(where, "where"),
            sort=_parse_object(sort, "sort"),
            projection=parse_projection_param(select),
            skip=_parse_non_negative(skip, "skip"),
            limit=_parse_non_negative(limit, "limit"),
            count=_parse_flag(count, "count"),
        )

    def run(self, repo: DocumentRepository, query: QueryDescriptor) -> Union[int, List[Dict[str, Any]]]:
        if query.count:
            QUERIES.labels(collection=repo.name, mode="count").inc()
            return repo.count(query.filter)
        QUERIES.labels(collection=repo.name, mode="find").inc()
        docs = repo.find(
            query.filter,
            projection=query.projection,
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )
        logger.debug("Query on %s returned %d documents", repo.name, len(docs))
        return docs
