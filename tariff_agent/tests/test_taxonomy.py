import pytest

from tariff_agent.domain.exceptions import InvalidRequest
from tariff_agent.domain.taxonomy import (
    ConversationState,
    Message,
    Phase,
    TaxonomyNode,
    latest_user_message,
)


def _node(i, parent=None, leaf=False):
    return TaxonomyNode(id=i, parent_id=parent, depth=0 if parent is None else 1, code=f"{i:04d}",
                        description=f"node {i}", localized_description=f"simpul {i}", is_leaf=leaf)


def test_node_from_legacy_fields():
    node = TaxonomyNode.from_dict({
        "id_": 12,
        "parent_id": 3,
        "depth": 2,
        "hs_code": "0306.17",
        "description": "Other frozen shrimps and prawns",
        "indonesian_description": "Udang beku lainnya",
        "is_leaf": True,
    })
    assert node.id == 12
    assert node.code == "0306.17"
    assert node.localized_description == "Udang beku lainnya"
    assert node.to_dict()["id"] == 12


def test_node_requires_id():
    with pytest.raises(InvalidRequest):
        TaxonomyNode.from_dict({"description": "no id"})


def test_state_round_trip():
    a, c = _node(1), _node(3, parent=1, leaf=True)
    state = ConversationState(phase=Phase.TRAVERSE, current_results=(a, c), current_node=c)
    wire = state.to_dict()
    assert wire["phase"] == "traverse"
    assert wire["currentNode"]["id"] == 3
    assert ConversationState.from_dict(wire) == state


def test_missing_state_is_initial():
    state = ConversationState.from_dict(None)
    assert state.phase is Phase.GENERAL
    assert state.current_results == ()
    assert state.current_node is None
    assert state.to_dict() == {"phase": "general", "currentResults": [], "currentNode": None}


def test_legacy_parse_db_state_reads_as_traverse():
    state = ConversationState.from_dict({
        "state": "parse_db",
        "currentResults": [_node(1).to_dict()],
        "currentNode": None,
    })
    assert state.phase is Phase.TRAVERSE
    assert [n.id for n in state.current_results] == [1]


def test_general_state_is_normalized():
    state = ConversationState.from_dict({
        "phase": "general",
        "currentResults": [_node(1).to_dict()],
        "currentNode": _node(1).to_dict(),
    })
    assert state == ConversationState.initial()


def test_unknown_phase_rejected():
    with pytest.raises(InvalidRequest):
        ConversationState.from_dict({"phase": "browse"})


def test_results_must_be_list():
    with pytest.raises(InvalidRequest):
        ConversationState.from_dict({"phase": "traverse", "currentResults": "x"})


def test_latest_user_message():
    messages = [
        Message(role="user", content="first"),
        Message(role="assistant", content="reply"),
        Message(role="user", content="second"),
        Message(role="assistant", content="reply 2"),
    ]
    assert latest_user_message(messages).content == "second"
    with pytest.raises(InvalidRequest):
        latest_user_message([Message(role="assistant", content="hi")])


def test_message_role_validated():
    with pytest.raises(InvalidRequest):
        Message.from_dict({"role": "tool", "content": "x"})


@pytest.mark.parametrize("raw,expected", [
    (True, True), (False, False), ("true", True), ("False", False), ("0", False), (1, True), (None, False),
])
def test_node_is_leaf_parsing(raw, expected):
    assert TaxonomyNode.from_dict({"id": 1, "is_leaf": raw}).is_leaf is expected


@pytest.mark.parametrize("raw", ["maybe", 2, [True]])
def test_node_is_leaf_rejects_garbage(raw):
    with pytest.raises(InvalidRequest):
        TaxonomyNode.from_dict({"id": 1, "is_leaf": raw})


def test_node_ids_must_be_whole_numbers():
    assert TaxonomyNode.from_dict({"id": 4.0, "parent_id": "2"}).id == 4
    for bad in ({"id": 1.7}, {"id": "1.7"}, {"id": True}, {"id": 1, "parent_id": 2.5}, {"id": 1, "depth": "--1"}):
        with pytest.raises(InvalidRequest):
            TaxonomyNode.from_dict(bad)
    state = {"phase": "traverse", "currentResults": [{"id": 1.7, "depth": 0}], "currentNode": None}
    with pytest.raises(InvalidRequest):
        ConversationState.from_dict(state)
