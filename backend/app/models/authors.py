"""
The manuscripts.authors column has been written in three shapes over time:
a JSON array, a JSON-encoded string of that array, and plain free text.
Everything downstream works with the normalised `Authors` union instead.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Iterator, Literal, Optional, Union

from pydantic import BaseModel, Field


class AuthorRecord(BaseModel):
    name: str = ""
    email: Optional[str] = None
    role: Optional[str] = None
    affiliation: Optional[str] = None


class UnstructuredAuthors(BaseModel):
    kind: Literal["unstructured"] = "unstructured"
    text: str


class AuthorList(BaseModel):
    kind: Literal["list"] = "list"
    items: list[AuthorRecord] = Field(default_factory=list)


Authors = Annotated[Union[UnstructuredAuthors, AuthorList], Field(discriminator="kind")]


def _record(item: Any) -> Optional[AuthorRecord]:
    if isinstance(item, AuthorRecord):
        return item
    if isinstance(item, str):
        name = item.strip()
        return AuthorRecord(name=name) if name else None
    if isinstance(item, dict):
        name = str(item.get("name") or item.get("full_name") or "").strip()
        email = str(item.get("email") or "").strip() or None
        if not name and not email:
            return None
        return AuthorRecord(
            name=name,
            email=email,
            role=(str(item.get("role")).strip() or None) if item.get("role") else None,
            affiliation=(str(item.get("affiliation")).strip() or None) if item.get("affiliation") else None,
        )
    return None


def normalize_authors(raw: Any) -> Authors:
    """
    Normalise whatever is stored in the authors column.

    None/empty -> empty list; list -> list; JSON string of a list -> list;
    JSON string of a tagged variant -> that variant; other text -> unstructured.
    """
    if isinstance(raw, (UnstructuredAuthors, AuthorList)):
        return raw
    if raw is None:
        return AuthorList()
    if isinstance(raw, dict):
        kind = raw.get("kind")
        if kind == "list":
            return AuthorList(items=[r for r in (_record(i) for i in raw.get("items") or []) if r])
        if kind == "unstructured":
            return UnstructuredAuthors(text=str(raw.get("text") or ""))
        single = _record(raw)
        return AuthorList(items=[single] if single else [])
    if isinstance(raw, (list, tuple)):
        return AuthorList(items=[r for r in (_record(i) for i in raw) if r])
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return AuthorList()
        if text[0] in "[{":
            try:
                parsed = json.loads(text)
            except ValueError:
                return UnstructuredAuthors(text=text)
            if isinstance(parsed, (list, dict)):
                return normalize_authors(parsed)
        return UnstructuredAuthors(text=text)
    return UnstructuredAuthors(text=str(raw))


def author_emails(authors: Authors) -> Iterator[str]:
    if isinstance(authors, AuthorList):
        for record in authors.items:
            if record.email:
                yield record.email


def authors_to_column(authors: Authors) -> Any:
    """Storage shape: a JSON array for lists, the raw text otherwise."""
    if isinstance(authors, AuthorList):
        return [r.model_dump(exclude_none=True) for r in authors.items]
    return authors.text


def authors_payload(raw: Any) -> dict:
    return normalize_authors(raw).model_dump()
