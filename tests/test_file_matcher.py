import os

import pytest

from paceguard_cli.file_matcher import (
    file_matches_pattern,
    file_matches_patterns,
    is_internal_state_file,
    is_markdown_file,
    normalize_file_path,
)

ROOT = os.path.abspath(os.sep + os.path.join("work", "project"))


def test_normalize_absolute_inside_root() -> None:
    assert normalize_file_path(os.path.join(ROOT, "src", "a.ts"), ROOT) == "src/a.ts"


def test_normalize_relative_is_unchanged() -> None:
    assert normalize_file_path("src/a.ts", ROOT) == "src/a.ts"


def test_normalize_absolute_outside_root_is_unchanged() -> None:
    outside = os.path.abspath(os.sep + os.path.join("elsewhere", "a.ts"))
    assert normalize_file_path(outside, ROOT) == outside


def test_sibling_directory_with_common_prefix_is_outside() -> None:
    sibling = ROOT + "-other" + os.sep + "a.ts"
    assert normalize_file_path(sibling, ROOT) == sibling


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("src/a/b/c.ts", "src/**/*.ts", True),
        ("src/a.ts", "src/**/*.ts", True),
        ("src/nested/test.ts", "src/*.ts", False),
        ("src/test.ts", "src/*.ts", True),
        ("src/components/Button.tsx", "src/components", True),
        ("src/components/Button.tsx", "src/components/", True),
        ("src/componentsX/Button.tsx", "src/components", False),
        ("src/test.ts", "./src/test.ts", True),
        ("src/test.ts", "src/test.js", False),
        ("file1.py", "file?.py", True),
        ("file10.py", "file?.py", False),
        ("docs/guide/intro.txt", "docs/**", True),
        ("a.ts", "**/*.ts", True),
        ("deep/er/a.ts", "**/*.ts", True),
        ("src/a.tsx", "src/*.ts", False),
        ("src/a+b.ts", "src/a+b.ts", True),
    ],
)
def test_file_matches_pattern(path: str, pattern: str, expected: bool) -> None:
    assert file_matches_pattern(path, pattern, ROOT) is expected


def test_absolute_path_is_normalized_before_matching() -> None:
    assert file_matches_pattern(os.path.join(ROOT, "src", "x", "y.ts"), "src/**/*.ts", ROOT)


def test_path_outside_root_never_matches_relative_pattern() -> None:
    outside = os.path.abspath(os.sep + os.path.join("elsewhere", "src", "a.ts"))
    assert not file_matches_pattern(outside, "src/**/*.ts", ROOT)


@pytest.mark.parametrize("pattern", ["", "./", None, 42, "[unclosed", "(("])
def test_malformed_patterns_do_not_raise(pattern) -> None:
    assert file_matches_pattern("src/a.ts", pattern, ROOT) is False


def test_matches_any_pattern() -> None:
    assert file_matches_patterns("src/a.ts", ["lib/", "src/*.ts"], ROOT)
    assert not file_matches_patterns("src/a.ts", ["lib/", "docs/**"], ROOT)


def test_empty_pattern_list_matches_nothing() -> None:
    assert file_matches_patterns("src/a.ts", [], ROOT) is False


def test_internal_state_files() -> None:
    assert is_internal_state_file(".paceguard/config.json", ROOT)
    assert is_internal_state_file(os.path.join(ROOT, ".paceguard", "pair_session.json"), ROOT)
    assert is_internal_state_file(".paceguard", ROOT)
    assert not is_internal_state_file(".paceguard-notes/a.txt", ROOT)
    assert not is_internal_state_file("src/.paceguard/a.txt", ROOT)


def test_markdown_files() -> None:
    assert is_markdown_file("README.md")
    assert is_markdown_file("docs/NOTES.MD")
    assert not is_markdown_file("src/markdown.py")
