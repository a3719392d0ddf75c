#!/usr/bin/env python3
"""
测试注释坐标索引、字面量位置判断和改写资格
"""

from helper import (
    CommentSpan, CommentSpanIndex, GoSourceParser, GoStringLiteral, LiteralClassifier,
    LiteralRole, Position, iter_string_literals,
)


def _literal(raw, role=LiteralRole.PLAIN, start=(3, 7), end=(3, 13)):
    return GoStringLiteral(
        raw=raw,
        start=Position(*start),
        end=Position(*end),
        start_byte=0,
        end_byte=len(raw.encode("utf-8")),
        role=role,
    )


def _roles(source):
    unit = GoSourceParser().parse(source)
    return [(lit.raw, lit.role) for lit in iter_string_literals(unit.root, unit.source)]


def test_comment_span_containment():
    index = CommentSpanIndex([CommentSpan(Position(2, 1), Position(4, 10))])
    assert index.contains(Position(2, 1), Position(4, 10))
    assert index.contains(Position(3, 5), Position(3, 9))
    assert not index.contains(Position(1, 5), Position(2, 3))
    assert not index.contains(Position(4, 5), Position(4, 11))
    assert not CommentSpanIndex([]).contains(Position(1, 1), Position(1, 2))


def test_comment_span_compares_line_before_column():
    index = CommentSpanIndex([CommentSpan(Position(2, 30), Position(3, 2))])
    assert index.contains(Position(2, 40), Position(3, 1))
    assert not index.contains(Position(2, 10), Position(2, 40))


def test_classifier_rule_order():
    classifier = LiteralClassifier(CommentSpanIndex([]))
    assert classifier.is_eligible(_literal('"你好"'))
    assert not classifier.is_eligible(_literal('`json:"姓名"`', role=LiteralRole.FIELD_TAG))
    assert not classifier.is_eligible(_literal('"你好"', role=LiteralRole.WRAPPED_FALLBACK))
    assert not classifier.is_eligible(_literal('"Hello"'))


def test_classifier_skips_literal_inside_comment():
    index = CommentSpanIndex([CommentSpan(Position(3, 1), Position(3, 40))])
    classifier = LiteralClassifier(index)
    assert not classifier.is_eligible(_literal('"你好"'))
    assert classifier.is_eligible(_literal('"你好"', start=(4, 7), end=(4, 13)))


def test_role_of_struct_tag():
    source = 'package main\n\ntype Person struct {\n\tName string `json:"姓名"`\n}\n'
    assert _roles(source) == [('`json:"姓名"`', LiteralRole.FIELD_TAG)]


def test_role_of_wrapped_fallback():
    source = (
        'package main\n\nfunc example() {\n'
        '\ts := i18n.Localizer.MustLocalize(&i18n.LocalizeConfig{MessageID: "nhsj", '
        'DefaultMessage: &i18n.Message{ID: "nhsj", Other: "你好世界"}})\n}\n'
    )
    assert _roles(source) == [
        ('"nhsj"', LiteralRole.COMPOSITE_VALUE),
        ('"nhsj"', LiteralRole.COMPOSITE_VALUE),
        ('"你好世界"', LiteralRole.WRAPPED_FALLBACK),
    ]


def test_role_of_call_argument_and_composite_value():
    source = (
        'package main\n\nfunc example() {\n'
        '\tfmt.Println("你好")\n'
        '\tnames := []string{"张三"}\n'
        '\tm := map[string]string{"键": "值"}\n'
        '\tx := "世界"\n}\n'
    )
    assert _roles(source) == [
        ('"你好"', LiteralRole.CALL_ARGUMENT),
        ('"张三"', LiteralRole.COMPOSITE_VALUE),
        ('"键"', LiteralRole.COMPOSITE_VALUE),
        ('"值"', LiteralRole.COMPOSITE_VALUE),
        ('"世界"', LiteralRole.PLAIN),
    ]


def test_literals_are_yielded_in_document_order():
    source = 'package main\n\nvar a = "一"\nvar b = "二"\n\nfunc f() { g("三", "四") }\n'
    assert [raw for raw, _ in _roles(source)] == ['"一"', '"二"', '"三"', '"四"']


def test_role_of_import_path():
    source = 'package main\n\nimport "例子/包"\n\nimport (\n\talias "例子/另一个"\n)\n'
    assert _roles(source) == [
        ('"例子/包"', LiteralRole.IMPORT_PATH),
        ('"例子/另一个"', LiteralRole.IMPORT_PATH),
    ]
    classifier = LiteralClassifier(CommentSpanIndex([]))
    assert not classifier.is_eligible(_literal('"例子/包"', role=LiteralRole.IMPORT_PATH))
