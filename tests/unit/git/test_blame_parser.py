"""Tests for line-porcelain parsing and author key normalization."""

from code_attribution.git.blame import (
    author_key,
    default_worker_count,
    parse_line_porcelain,
    parse_ls_files_eol,
)

SHA_A = "a" * 40
SHA_B = "b" * 40


def _unit(sha, name, email, content):
    return (
        f"{sha} 1 1 1\n"
        f"author {name}\n"
        f"author-mail <{email}>\n"
        "author-time 1700000000\n"
        "author-tz +0000\n"
        f"committer {name}\n"
        f"committer-mail <{email}>\n"
        "summary something\n"
        "filename src/app.py\n"
        f"\t{content}\n"
    )


class TestParseLinePorcelain:
    def test_counts_lines_per_author(self):
        output = (
            _unit(SHA_A, "Alice", "alice@example.com", "import os")
            + _unit(SHA_B, "Bob", "bob@example.com", "x = 1")
            + _unit(SHA_A, "Alice", "alice@example.com", "y = 2")
        )

        counts = parse_line_porcelain(output)

        assert counts == {
            ("Alice", "alice@example.com"): 2,
            ("Bob", "bob@example.com"): 1,
        }

    def test_content_lines_that_look_like_headers(self):
        output = _unit(SHA_A, "Alice", "alice@example.com", "author Mallory")

        counts = parse_line_porcelain(output)

        assert counts == {("Alice", "alice@example.com"): 1}

    def test_empty_output(self):
        assert parse_line_porcelain("") == {}

    def test_email_is_lower_cased(self):
        counts = parse_line_porcelain(_unit(SHA_A, "Alice", "Alice@Example.COM", "x"))
        assert ("Alice", "alice@example.com") in counts

    def test_empty_email_becomes_none(self):
        counts = parse_line_porcelain(_unit(SHA_A, "Alice", "", "x"))
        assert counts == {("Alice", None): 1}


class TestAuthorKey:
    def test_blank_name_is_unknown(self):
        assert author_key("  ", "a@b.c") == ("Unknown", "a@b.c")
        assert author_key(None, None) == ("Unknown", None)

    def test_trims(self):
        assert author_key(" Alice ", " ALICE@x.io ") == ("Alice", "alice@x.io")


class TestDefaultWorkerCount:
    def test_clamped_between_two_and_eight(self):
        assert 2 <= default_worker_count() <= 8


class TestParseLsFilesEol:
    def test_flags_binary_index_content(self):
        output = (
            "i/lf    w/lf    attr/                 \tsrc/app.py\0"
            "i/-text w/-text attr/                 \tassets/logo.png\0"
            "i/      w/      attr/                 \tempty.txt\0"
            "i/crlf  w/crlf  attr/text             \tdocs/with space.md\0"
        )

        assert parse_ls_files_eol(output) == [
            ("src/app.py", False),
            ("assets/logo.png", True),
            ("empty.txt", False),
            ("docs/with space.md", False),
        ]

    def test_empty_output(self):
        assert parse_ls_files_eol("") == []
