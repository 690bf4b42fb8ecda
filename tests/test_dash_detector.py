import pytest

from dash_animator.animation.dash_detector import (
    DEFAULT_CYCLE_LENGTH,
    AnimationRecord,
    cycle_length_for,
    detect,
    parse_dash_array,
)
from dash_animator.animation.svg_document import SvgDocument


def _doc(body: str) -> SvgDocument:
    return SvgDocument.from_text(f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">{body}</svg>')


def test_single_dashed_path_scenario():
    doc = _doc('<path id="p" stroke="#000" stroke-dasharray="5,7" d="M0 0 L100 0"/>')
    result = detect(doc)
    assert result.records == [AnimationRecord(id="dash-1", cycle_length=12.0)]
    assert doc.node_at(result.node_index["dash-1"]) is doc.find_by_id("p")
    assert result.used_fallback is False


@pytest.mark.parametrize(
    "value, expected",
    [
        ("5,7", [5.0, 7.0]),
        ("5px, 7px", [5.0, 7.0]),
        ("  4 2\t1 ", [4.0, 2.0, 1.0]),
        ("1.5em,2.5%", [1.5, 2.5]),
        ("5 -2 abc 3", [5.0, 3.0]),
        ("", []),
        (None, []),
    ],
)
def test_parse_dash_array(value, expected):
    assert parse_dash_array(value) == expected


def test_cycle_length_is_exact_sum():
    assert cycle_length_for("10 5 2.5") == pytest.approx(17.5)


@pytest.mark.parametrize("value", ["0", "0 0", "abc", "-4 -4", ""])
def test_non_positive_or_unparseable_falls_back_to_default(value):
    assert cycle_length_for(value) == DEFAULT_CYCLE_LENGTH


def test_unparseable_pattern_is_still_animated_with_default_cycle():
    doc = _doc('<line stroke-dasharray="dotted" x1="0" y1="0" x2="5" y2="0"/>')
    records = detect(doc).records
    assert [r.cycle_length for r in records] == [300.0]


def test_inherited_pattern_marks_every_shape_in_document_order():
    doc = _doc(
        '<g stroke-dasharray="4 4">'
        '<rect id="a" width="10" height="10"/>'
        '<circle id="b" r="4"/>'
        "</g>"
        '<path id="c" d="M0 0 L5 5"/>'
    )
    result = detect(doc)
    assert [r.id for r in result.records] == ["dash-1", "dash-2"]
    assert [doc.node_at(result.node_index[r.id]).get("id") for r in result.records] == ["a", "b"]
    assert all(r.cycle_length == 8.0 for r in result.records)


def test_inline_style_pattern_is_detected():
    doc = _doc('<ellipse rx="4" ry="2" style="stroke:#000; stroke-dasharray: 10 5"/>')
    assert detect(doc).records[0].cycle_length == 15.0


@pytest.mark.parametrize("none_value", ["none", "NONE", "None"])
def test_none_pattern_is_never_animated(none_value):
    doc = _doc(f'<g stroke-dasharray="{none_value}"><path d="M0 0 L1 1"/><polyline points="0,0 1,1"/></g>')
    assert detect(doc).records == []


def test_none_everywhere_without_dashed_group_yields_nothing():
    doc = _doc(
        '<g id="items"><g><path stroke-dasharray="none" d="M0 0"/></g></g>'
        '<polygon stroke-dasharray="none" points="0,0 1,0 1,1"/>'
    )
    result = detect(doc)
    assert result.records == []
    assert result.used_fallback is True


def test_fallback_marks_paths_in_dashed_groups_under_container():
    doc = _doc(
        '<g id="items">'
        '<g stroke-dasharray="none"><path id="p1" d="M0 0"/><g><path id="p2" d="M1 1"/></g></g>'
        '<g><path id="p3" d="M2 2"/></g>'
        "</g>"
        '<g stroke-dasharray="none"><path id="outside" d="M3 3"/></g>'
    )
    result = detect(doc)
    assert result.used_fallback is True
    assert [r.id for r in result.records] == ["dash-1", "dash-2"]
    assert all(r.cycle_length == DEFAULT_CYCLE_LENGTH for r in result.records)
    assert [doc.node_at(result.node_index[r.id]).get("id") for r in result.records] == ["p1", "p2"]


def test_fallback_container_is_configurable():
    doc = _doc('<g id="layer"><g stroke-dasharray="none"><path id="p" d="M0 0"/></g></g>')
    assert detect(doc).records == []
    assert [r.id for r in detect(doc, fallback_container_id="layer").records] == ["dash-1"]


def test_detection_does_not_mutate_document():
    doc = _doc('<path stroke-dasharray="2" d="M0 0 L9 9"/>')
    before = doc.serialize()
    detect(doc)
    assert doc.serialize() == before


def test_record_rejects_non_positive_cycle():
    with pytest.raises(ValueError):
        AnimationRecord(id="dash-1", cycle_length=0)


def test_fallback_container_does_not_count_as_its_own_group():
    doc = _doc('<g id="items" stroke-dasharray="none"><path d="M0 0"/><g><path d="M1 1"/></g></g>')
    result = detect(doc)
    assert result.records == []
    assert result.used_fallback is True
