import io

import pytest

from xv6py.tools import MAX_LINE, WcCounts, diff_lines, diff_main, tree, tree_main, wc, wc_main


@pytest.mark.parametrize("data", [
    b"",
    b"hello world\nfoo\n",
    b"  leading and trailing  \n\n\tx\r\n",
    b"no newline at end",
    b"w " * 700,
])
def test_wc_invariants(data):
    counts = wc(io.BytesIO(data))
    assert counts.chars == len(data)
    assert counts.lines == data.count(b"\n")
    assert counts.words == len(data.split())


def test_wc_nul_separates_words():
    assert wc(io.BytesIO(b"a\0b")).words == wc(io.BytesIO(b"a b")).words


def test_wc_text_stream():
    assert wc(io.StringIO("one two\n")) == wc(io.BytesIO(b"one two\n"))


def test_wc_counts_are_values():
    assert wc(io.BytesIO(b"x\n")) == WcCounts(1, 1, 2)


def test_wc_main_file(tmp_path, capsys):
    path = tmp_path / "f.txt"
    path.write_bytes(b"alpha beta\ngamma\n")
    assert wc_main([str(path)]) == 0
    c = wc(io.BytesIO(path.read_bytes()))
    assert capsys.readouterr().out == f"{c.lines} {c.words} {c.chars} {path}\n"


def test_wc_main_missing(tmp_path, capsys):
    missing = tmp_path / "missing"
    assert wc_main([str(missing)]) == 1
    assert f"wc: cannot open {missing}" in capsys.readouterr().out


def test_diff_identical():
    text = "a\nb\nc\n"
    assert list(diff_lines(io.StringIO(text), io.StringIO(text))) == []


def test_diff_one_line_differs():
    out = list(diff_lines(io.StringIO("a\nb\nc\n"), io.StringIO("a\nx\nc\n")))
    assert out == [(2, "b\n", "x\n")]


def test_diff_stops_when_one_side_ends():
    out = list(diff_lines(io.StringIO("a\nextra\nmore\n"), io.StringIO("a\n")))
    assert out == [(2, "extra\n", "")]


def test_diff_long_lines_split_into_pieces():
    a = "a" * (MAX_LINE - 1) + "b\n"
    b = "a" * MAX_LINE + "\n"
    out = list(diff_lines(io.StringIO(a), io.StringIO(b)))
    assert out == [(2, "b\n", "a\n")]


def test_diff_main_usage(capsys):
    assert diff_main(["only-one"]) == 1
    assert "Usage: diff file1 file2" in capsys.readouterr().out


def test_diff_main_cannot_open(tmp_path, capsys):
    exists = tmp_path / "a"
    exists.write_text("x\n")
    assert diff_main([str(exists), str(tmp_path / "nope")]) == 1
    assert "diff: cannot open files" in capsys.readouterr().out


def test_diff_main_output(tmp_path, capsys):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.write_text("same\nleft\n")
    b.write_text("same\nright\n")
    assert diff_main([str(a), str(b)]) == 0
    assert capsys.readouterr().out == "Line 2 differs:\n< left\n> right\n\n"


def test_tree_listing(tmp_path):
    (tmp_path / "f").write_text("x")
    (tmp_path / "s").mkdir()
    (tmp_path / "s" / "g").write_text("y")
    root = str(tmp_path)
    assert list(tree(root)) == [f"{root}/", "  f", f"  {root}/s/", "    g"]


def test_tree_of_file(tmp_path):
    path = tmp_path / "plain"
    path.write_text("z")
    assert list(tree(str(path))) == [str(path)]


def test_tree_missing(tmp_path):
    missing = str(tmp_path / "missing")
    assert list(tree(missing)) == [f"tree: cannot open {missing}"]


def test_tree_main(tmp_path, capsys):
    (tmp_path / "f").write_text("x")
    assert tree_main([str(tmp_path)]) == 0
    assert capsys.readouterr().out == f"{tmp_path}/\n  f\n"