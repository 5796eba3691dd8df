"""Tests for loading conformance resources from disk."""

import json

import pytest

from src.utils.exceptions import ProfileLoadError
from src.validation.profiles import DirectoryProfileSource, ResourceKind, StaticProfileSource


def write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content), encoding="utf-8")


def test_directory_source_groups_by_kind_and_url(tmp_path, lab_profile):
    """Single resources and bundles are read recursively."""
    write(tmp_path / "profiles" / "lab.json", lab_profile)
    write(
        tmp_path / "terminology.json",
        {
            "resourceType": "Bundle",
            "type": "collection",
            "entry": [
                {"resource": {"resourceType": "ValueSet", "url": "https://example.org/vs"}},
                {"resource": {"resourceType": "CodeSystem", "url": "https://example.org/cs"}},
                {"resource": {"resourceType": "Questionnaire", "url": "https://example.org/q"}},
            ],
        },
    )
    write(tmp_path / "example-patient.json", {"resourceType": "Patient", "id": "p1"})

    profiles = DirectoryProfileSource(tmp_path).get_parsed_profiles()

    assert list(profiles[ResourceKind.STRUCTURE_DEFINITION]) == [lab_profile["url"]]
    assert list(profiles[ResourceKind.VALUE_SET]) == ["https://example.org/vs"]
    assert list(profiles[ResourceKind.CODE_SYSTEM]) == ["https://example.org/cs"]
    assert list(profiles[ResourceKind.QUESTIONNAIRE]) == ["https://example.org/q"]


def test_directory_source_rejects_invalid_json(tmp_path):
    """Broken files abort loading."""
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ProfileLoadError, match="broken.json"):
        DirectoryProfileSource(tmp_path).get_parsed_profiles()


def test_directory_source_requires_canonical_urls(tmp_path):
    """Conformance resources without url cannot be resolved and are rejected."""
    write(tmp_path / "vs.json", {"resourceType": "ValueSet", "id": "no-url"})
    with pytest.raises(ProfileLoadError, match="canonical url"):
        DirectoryProfileSource(tmp_path).get_parsed_profiles()


def test_directory_source_rejects_malformed_bundle_entries(tmp_path):
    """Bundle entries must be objects."""
    write(tmp_path / "bundle.json", {"resourceType": "Bundle", "entry": ["x"]})
    with pytest.raises(ProfileLoadError, match="entry 0"):
        DirectoryProfileSource(tmp_path).get_parsed_profiles()


def test_directory_source_requires_directory(tmp_path):
    """A missing profile directory is a configuration error."""
    with pytest.raises(ProfileLoadError):
        DirectoryProfileSource(tmp_path / "missing").get_parsed_profiles()


def test_static_source_has_every_kind():
    """Kinds without definitions map to empty dictionaries."""
    profiles = StaticProfileSource({"ValueSet": {"u": {"url": "u"}}}).get_parsed_profiles()
    assert profiles[ResourceKind.VALUE_SET] == {"u": {"url": "u"}}
    assert profiles[ResourceKind.QUESTIONNAIRE] == {}
