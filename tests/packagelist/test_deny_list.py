"""Tests for the deny list and manual add / remove."""

from __future__ import annotations

import pytest

from packagelist.engines.deny_list import (
    add_packages,
    apply_deny_list,
    deny_urls,
    remove_packages,
    split_body,
)
from packagelist.errors import InvalidURLError

A = "https://github.com/a/a.git"
B = "https://github.com/b/b.git"


class TestApplyDenyList:
    def test_drops_denied_keys(self):
        assert apply_deny_list([B, A], ["https://github.com/B/B"]) == [A]

    def test_result_sorted(self):
        assert apply_deny_list([B, A], []) == [A, B]

    def test_deny_urls(self):
        entries = [{"notes": "x", "package_url": A}, {"notes": "", "package_url": B}]
        assert deny_urls(entries) == [A, B]


class TestAddPackages:
    def test_adds_with_git_suffix(self):
        result = add_packages([A], ["https://github.com/new/pkg"], [])
        assert result.added == ["https://github.com/new/pkg.git"]
        assert result.urls == [A, "https://github.com/new/pkg.git"]

    def test_upgrades_http(self):
        result = add_packages([], ["http://github.com/o/r"], [])
        assert result.added == ["https://github.com/o/r.git"]

    def test_skips_non_url_tokens(self):
        body = "Please add https://github.com/o/r thanks!"
        result = add_packages([], split_body(body), [])
        assert result.added == ["https://github.com/o/r.git"]

    def test_skips_known(self):
        result = add_packages([A], ["https://github.com/A/A"], [])
        assert result.added == []
        assert result.urls == [A]

    def test_denied_not_added(self):
        result = add_packages([A], ["https://github.com/bad/pkg"], ["https://github.com/bad/pkg.git"])
        assert result.urls == [A]

    def test_other_hosts_skipped(self):
        body = "Please add https://github.com/c/d see docs at https://example.com/docs"
        result = add_packages([A], split_body(body), [])
        assert result.added == ["https://github.com/c/d.git"]
        assert result.urls == [A, "https://github.com/c/d.git"]


class TestRemovePackages:
    def test_removes_and_denies(self):
        result = remove_packages([A, B], ["https://github.com/b/b"], [], "#42")
        assert result.urls == [A]
        assert result.removed == [B]
        assert result.deny_entries == [{"notes": "#42", "package_url": B}]

    def test_index_link_rewritten(self):
        result = remove_packages([A, B], ["https://swiftpackageindex.com/b/b"], [], "")
        assert result.urls == [A]

    def test_already_denied_not_duplicated(self):
        existing = [{"notes": "old", "package_url": B}]
        result = remove_packages([A], [B, "https://github.com/B/B"], existing, "new")
        assert result.deny_entries == existing

    def test_repeated_url_denied_once(self):
        result = remove_packages([A, B], [B, B], [], "n")
        assert result.deny_entries == [{"notes": "n", "package_url": B}]

    def test_invalid_token(self):
        with pytest.raises(InvalidURLError):
            remove_packages([A], ["not-a-url"], [], "")
