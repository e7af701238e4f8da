"""Operational semantics of each instruction, executed one at a time."""

import pytest

from backend.ppl import instructions as ins
from backend.ppl.environment import Environment
from backend.ppl.errors import (
    DuplicateIdentifier,
    EmptyList,
    InvalidJumpTarget,
    TypeMismatch,
    UndefinedIdentifier,
)
from backend.ppl.values import INT64_MAX, INT64_MIN, from_python, make_integer, to_python


def step(instr, env, line=1, line_count=10):
    return ins.execute(instr, env, line, line_count)


def env_with(**bindings):
    env = Environment()
    for name, value in bindings.items():
        env.declare(name, from_python(value))
    return env


def value_of(env, name):
    return to_python(env.read(name))


def test_integer_and_list_declarations():
    env = Environment()
    assert step(ins.IntegerDecl("x"), env, line=3) == 4
    assert step(ins.ListDecl("l"), env) == 2
    assert value_of(env, "x") == 0
    assert value_of(env, "l") == []
    with pytest.raises(DuplicateIdentifier):
        step(ins.IntegerDecl("l"), env)
    with pytest.raises(DuplicateIdentifier):
        step(ins.ListDecl("x"), env)


def test_merge_prepends_in_reverse_insertion_order():
    env = env_with(l=[], t=1)
    step(ins.Merge("t", "l"), env)
    env.write("t", make_integer(2))
    step(ins.Merge("t", "l"), env)
    assert value_of(env, "l") == [2, 1]
    assert value_of(env, "t") == 2


def test_merge_copies_the_source():
    env = env_with(src=[1, [2]], dst=[0])
    step(ins.Merge("src", "dst"), env)
    assert value_of(env, "dst") == [[1, [2]], 0]
    inserted = env.read("dst").head.value
    inserted.prepend(make_integer(99))
    assert value_of(env, "src") == [1, [2]]


def test_merge_list_into_itself():
    env = env_with(l=[])
    step(ins.Merge("l", "l"), env)
    assert value_of(env, "l") == [[]]
    step(ins.Merge("l", "l"), env)
    assert value_of(env, "l") == [[[]], []]


def test_merge_errors():
    env = env_with(n=1, l=[])
    with pytest.raises(TypeMismatch):
        step(ins.Merge("l", "n"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Merge("missing", "l"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Merge("n", "missing"), env)
    assert value_of(env, "l") == []


def test_copy_isolates_and_overwrites():
    env = env_with(l=[1, [2]], m=5)
    step(ins.Copy("l", "m"), env)
    assert value_of(env, "m") == [1, [2]]
    nested = list(env.read("m"))[1]
    nested.prepend(make_integer(3))
    env.read("m").prepend(make_integer(0))
    assert value_of(env, "l") == [1, [2]]
    assert value_of(env, "m") == [0, 1, [3, 2]]

    step(ins.Copy("l", "fresh"), env)
    assert value_of(env, "fresh") == [1, [2]]


def test_copy_errors():
    env = env_with(n=1)
    with pytest.raises(TypeMismatch):
        step(ins.Copy("n", "m"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Copy("missing", "m"), env)
    assert not env.exists("m")


def test_head_copies_first_element():
    env = env_with(l=[[1, 2], 3], h=7)
    step(ins.Head("l", "h"), env)
    assert value_of(env, "h") == [1, 2]
    env.read("h").prepend(make_integer(0))
    assert value_of(env, "l") == [[1, 2], 3]

    step(ins.Tail("l", "rest"), env)
    step(ins.Head("rest", "i"), env)
    assert value_of(env, "i") == 3


def test_head_on_empty_list_leaves_target_alone():
    env = env_with(l=[], h=7)
    with pytest.raises(EmptyList):
        step(ins.Head("l", "h"), env)
    with pytest.raises(EmptyList):
        step(ins.Head("l", "new"), env)
    assert value_of(env, "h") == 7
    assert not env.exists("new")


def test_head_errors():
    env = env_with(n=1)
    with pytest.raises(TypeMismatch):
        step(ins.Head("n", "h"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Head("missing", "h"), env)


@pytest.mark.parametrize("source,expected", [([], []), ([1], []), ([1, [2], 3], [[2], 3])])
def test_tail(source, expected):
    env = env_with(l=source)
    step(ins.Tail("l", "t"), env)
    assert value_of(env, "t") == expected
    assert value_of(env, "l") == source


def test_tail_is_a_copy():
    env = env_with(l=[1, [2]])
    step(ins.Tail("l", "t"), env)
    env.read("t").head.value.prepend(make_integer(5))
    assert value_of(env, "l") == [1, [2]]
    step(ins.Tail("l", "l"), env)
    assert value_of(env, "l") == [[2]]


def test_tail_errors():
    env = env_with(n=1)
    with pytest.raises(TypeMismatch):
        step(ins.Tail("n", "t"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Tail("missing", "t"), env)


def test_assign():
    env = env_with(l=[])
    step(ins.Assign("x", 5), env)
    assert value_of(env, "x") == 5
    step(ins.Assign("x", -8), env)
    assert value_of(env, "x") == -8
    with pytest.raises(TypeMismatch):
        step(ins.Assign("l", 1), env)
    assert value_of(env, "l") == []


def test_chs():
    env = env_with(x=5, low=INT64_MIN, l=[])
    step(ins.Chs("x"), env)
    assert value_of(env, "x") == -5
    step(ins.Chs("low"), env)
    assert value_of(env, "low") == INT64_MIN
    with pytest.raises(TypeMismatch):
        step(ins.Chs("l"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Chs("missing"), env)


def test_add_only_mutates_first_operand():
    env = env_with(a=10, b=3)
    step(ins.Add("a", "b"), env)
    step(ins.Add("a", "b"), env)
    assert value_of(env, "a") == 10 + 2 * 3
    assert value_of(env, "b") == 3
    step(ins.Add("b", "b"), env)
    assert value_of(env, "b") == 6


def test_add_wraps_around():
    env = env_with(a=INT64_MAX, one=1)
    step(ins.Add("a", "one"), env)
    assert value_of(env, "a") == INT64_MIN


def test_add_errors():
    env = env_with(a=1, l=[])
    with pytest.raises(TypeMismatch):
        step(ins.Add("a", "l"), env)
    with pytest.raises(TypeMismatch):
        step(ins.Add("l", "a"), env)
    # existence of both operands is checked before their types
    with pytest.raises(UndefinedIdentifier):
        step(ins.Add("l", "missing"), env)
    with pytest.raises(UndefinedIdentifier):
        step(ins.Add("missing", "a"), env)
    assert value_of(env, "a") == 1


@pytest.mark.parametrize(
    "value,jumps",
    [(0, True), (1, False), (-3, False), ([], True), ([0], False), ([[]], False)],
)
def test_if_jumps_only_on_falsy(value, jumps):
    env = env_with(c=value)
    next_line = step(ins.If("c", 7), env, line=3, line_count=10)
    assert next_line == (7 if jumps else 4)


def test_if_target_range():
    env = env_with(zero=0, one=1)
    assert step(ins.If("zero", 10), env, line=1, line_count=10) == 10
    with pytest.raises(InvalidJumpTarget):
        step(ins.If("zero", 11), env, line=1, line_count=10)
    # the target is only checked when the jump is taken
    assert step(ins.If("one", 11), env, line=1, line_count=10) == 2
    with pytest.raises(UndefinedIdentifier):
        step(ins.If("missing", 1), env)


def test_hlt_and_nop():
    env = Environment()
    assert step(ins.Hlt(), env) is ins.HALT
    assert step(ins.Nop(), env, line=5) == 6
    assert len(env) == 0


def test_every_opcode_has_an_executor():
    assert set(ins.OPCODES) == {
        "INTEGER", "LIST", "MERGE", "COPY", "HEAD", "TAIL", "ASSIGN", "CHS", "ADD", "IF", "HLT",
    }
    for cls in list(ins.OPCODES.values()) + [ins.Nop]:
        assert cls in ins._EXECUTORS


def test_to_source():
    assert ins.to_source(ins.Assign("x", -5)) == "ASSIGN x -5"
    assert ins.to_source(ins.If("c", 3)) == "IF c 3"
    assert ins.to_source(ins.Hlt()) == "HLT"
    assert ins.to_source(ins.Nop()) == ""
