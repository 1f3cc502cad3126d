# tests/test_filters.py
import pytest

from app.services.filters import ExtensionFilter, extension_of, is_allowed, parse_filter_spec


def test_is_allowed_basic():
    patterns = {"*.png", "*.jpg"}
    assert is_allowed("a.png", patterns) is True
    assert is_allowed("a.exe", patterns) is False
    assert is_allowed("noext", patterns) is False


def test_extension_is_case_insensitive_and_last_dot():
    assert is_allowed("Photo.PNG", ["*.png"])
    assert is_allowed("archive.tar.gz", ["*.gz"])
    assert not is_allowed("archive.tar.gz", ["*.tar"])
    assert extension_of("trailing.") is None
    assert extension_of("dir.v2/readme") is None


def test_non_string_names_are_rejected():
    assert is_allowed(None, ["*.png"]) is False
    assert ExtensionFilter.from_spec("*.png").is_allowed(42) is False


def test_parse_filter_spec_normalizes():
    assert parse_filter_spec(" *.png, *.JPG,,*.png ") == ("*.png", "*.jpg")
    assert parse_filter_spec(["*.txt"]) == ("*.txt",)


@pytest.mark.parametrize("bad", ["png", "*", "*.*", "*.p?g", "a*.png"])
def test_parse_filter_spec_rejects_non_extension_patterns(bad):
    with pytest.raises(ValueError):
        parse_filter_spec(bad)


def test_default_filter():
    f = ExtensionFilter.from_spec()
    assert f.is_allowed("report.docx")
    assert f.is_allowed("photo.JPEG")
    assert not f.is_allowed("run.exe")
    assert not f.is_allowed("script.py")
