from app.models.authors import (
    AuthorList,
    UnstructuredAuthors,
    author_emails,
    authors_payload,
    authors_to_column,
    normalize_authors,
)


def test_missing_authors_is_an_empty_list():
    assert normalize_authors(None) == AuthorList()
    assert normalize_authors("   ") == AuthorList()


def test_list_of_dicts_keeps_named_or_emailed_entries():
    authors = normalize_authors(
        [
            {"name": "Ada Lovelace", "email": "ada@example.com", "affiliation": "Analytical Society"},
            {"name": "", "email": ""},
            {"full_name": "Charles Babbage"},
        ]
    )
    assert isinstance(authors, AuthorList)
    assert [a.name for a in authors.items] == ["Ada Lovelace", "Charles Babbage"]
    assert authors.items[0].affiliation == "Analytical Society"


def test_json_encoded_string_is_parsed():
    authors = normalize_authors('[{"name": "Grace Hopper", "email": "grace@example.com"}]')
    assert isinstance(authors, AuthorList)
    assert list(author_emails(authors)) == ["grace@example.com"]


def test_free_text_and_broken_json_stay_unstructured():
    assert normalize_authors("Smith, J. and Doe, A.") == UnstructuredAuthors(text="Smith, J. and Doe, A.")
    broken = normalize_authors("[not json")
    assert isinstance(broken, UnstructuredAuthors)
    assert list(author_emails(broken)) == []


def test_tagged_payload_round_trips_through_storage_shape():
    stored = authors_to_column(normalize_authors([{"name": "Alan Turing", "email": "alan@example.com"}]))
    assert stored == [{"name": "Alan Turing", "email": "alan@example.com"}]
    assert authors_payload(stored)["kind"] == "list"
    assert authors_payload("free text") == {"kind": "unstructured", "text": "free text"}
