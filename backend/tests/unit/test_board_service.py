import pytest

from app.core.errors import ValidationError
from app.models.cms import BoardMemberSave
from app.services.board_service import BoardService


@pytest.fixture
def board(fake_db):
    return BoardService(supabase_admin=fake_db, table="advisory_board")


def test_unknown_table_is_rejected(fake_db):
    with pytest.raises(ValueError):
        BoardService(supabase_admin=fake_db, table="profiles")


def test_new_members_get_next_order_index(board, fake_db):
    first = board.save_member(BoardMemberSave(section="Chairs", name="Ada", email=" "))
    second = board.save_member(BoardMemberSave(section="Chairs", name="Grace"))
    other = board.save_member(BoardMemberSave(section="Members", name="Alan"))

    assert (first["order_index"], second["order_index"], other["order_index"]) == (1, 2, 1)
    assert first["email"] is None
    assert first["active"] is True


def test_update_existing_member(board, fake_db):
    member = board.save_member(BoardMemberSave(section="Chairs", name="Ada"))
    updated = board.save_member(BoardMemberSave(id=member["id"], section="Chairs", name="Ada Lovelace"))
    assert updated["name"] == "Ada Lovelace"
    assert len(fake_db.rows("advisory_board")) == 1


def test_listing_hides_inactive_and_sorts(board):
    b = board.save_member(BoardMemberSave(section="B", name="Second section"))
    board.save_member(BoardMemberSave(section="A", name="Two", order_index=2))
    board.save_member(BoardMemberSave(section="A", name="One", order_index=1))
    board.deactivate_member(b["id"])

    assert [m["name"] for m in board.list_members()] == ["One", "Two"]


def test_section_actions(board):
    board.save_member(BoardMemberSave(section="Old", name="Ada"))
    board.save_member(BoardMemberSave(section="Gone", name="Grace"))

    board.apply_section_action("rename_section", "Old", "New")
    board.apply_section_action("delete_section", "Gone", None)

    assert [(m["section"], m["name"]) for m in board.list_members()] == [("New", "Ada")]
    with pytest.raises(ValidationError):
        board.apply_section_action("rename_section", "New", " ")
    with pytest.raises(ValidationError):
        board.apply_section_action("explode", "New", None)


def test_save_requires_section_and_name(board):
    with pytest.raises(ValidationError):
        board.save_member(BoardMemberSave(section="Chairs", name=" "))
