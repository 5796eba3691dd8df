"""Tests for the support chain and its providers."""

import threading

import pytest

from src.utils.exceptions import SnapshotGenerationError
from src.validation.profiles import ResourceKind
from src.validation.support.chain import ValidationSupportChain, build_support_chain
from src.validation.support.default_profiles import (
    BASE_DEFINITION_URL,
    DefaultProfileValidationSupport,
)
from src.validation.support.prepopulated import PrePopulatedValidationSupport
from src.validation.support.snapshot import SnapshotGeneratingValidationSupport
from src.validation.support.terminology import (
    CommonCodeSystemsTerminologyService,
    InMemoryTerminologyValidationSupport,
    loinc_check_digit,
)

OBSERVATION_URL = BASE_DEFINITION_URL + "Observation"
CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/observation-category"


def chain_with(**profiles):
    """Build the standard chain over keyword-named definitions."""
    return build_support_chain(
        {ResourceKind(kind): resources for kind, resources in profiles.items()}
    )


def test_chain_order_is_fixed():
    """Providers are composed in their precedence order, one of each kind."""
    chain = build_support_chain({})
    assert [type(s) for s in chain.supports] == [
        PrePopulatedValidationSupport,
        DefaultProfileValidationSupport,
        InMemoryTerminologyValidationSupport,
        CommonCodeSystemsTerminologyService,
        SnapshotGeneratingValidationSupport,
    ]


def test_pre_populated_definition_wins_over_default():
    """A curated definition replaces the built-in one with the same URL."""
    curated = {
        "resourceType": "StructureDefinition",
        "url": OBSERVATION_URL,
        "name": "CuratedObservation",
        "type": "Observation",
        "snapshot": {"element": [{"id": "Observation", "path": "Observation"}]},
    }
    chain = chain_with(StructureDefinition={OBSERVATION_URL: curated})

    assert chain.fetch_structure_definition(OBSERVATION_URL)["name"] == "CuratedObservation"


def test_default_definitions_fill_the_gaps():
    """Base definitions resolve without any curated profile."""
    chain = build_support_chain({})

    patient = chain.fetch_structure_definition(BASE_DEFINITION_URL + "Patient")
    assert patient["type"] == "Patient"
    assert chain.fetch_structure_definition("https://example.org/unknown") is None


def test_versioned_canonical_falls_back_to_plain_url():
    """``url|version`` resolves to the definition registered without version."""
    chain = build_support_chain({})
    assert chain.fetch_raw_structure_definition(OBSERVATION_URL + "|4.0.1") is not None


def test_default_definitions_load_lazily():
    """Built-in definitions are read on first lookup."""
    support = DefaultProfileValidationSupport()
    assert not support.loaded
    support.fetch_resource(ResourceKind.CODE_SYSTEM, CATEGORY_SYSTEM)
    assert support.loaded


def test_loaded_definitions_are_read_without_the_lock():
    """Lookups after loading do not wait for the loading lock."""
    support = DefaultProfileValidationSupport()
    support.fetch_resource(ResourceKind.CODE_SYSTEM, CATEGORY_SYSTEM)
    results = []

    with support._lock:
        reader = threading.Thread(
            target=lambda: results.append(
                support.fetch_resource(ResourceKind.CODE_SYSTEM, CATEGORY_SYSTEM)
            )
        )
        reader.start()
        reader.join(timeout=5)
        blocked = reader.is_alive()

    assert not blocked
    assert results[0]["url"] == CATEGORY_SYSTEM


def test_snapshot_generated_from_base(lab_profile):
    """Differential elements are merged onto the base snapshot."""
    chain = chain_with(StructureDefinition={lab_profile["url"]: lab_profile})

    profile = chain.fetch_structure_definition(lab_profile["url"])

    elements = {e["id"]: e for e in profile["snapshot"]["element"]}
    assert elements["Observation"]["short"] == "Lab result"
    assert elements["Observation"]["max"] == "*"
    assert elements["Observation.category"]["min"] == 1
    assert "snapshot" not in lab_profile


def test_snapshot_of_profile_on_profile(lab_profile):
    """A differential base is itself expanded first."""
    derived = {
        "resourceType": "StructureDefinition",
        "url": "https://example.org/fhir/StructureDefinition/Erythrocytes",
        "type": "Observation",
        "baseDefinition": lab_profile["url"],
        "differential": {"element": [{"id": "Observation.value[x]", "path": "Observation.value[x]", "min": 1}]},
    }
    chain = chain_with(
        StructureDefinition={lab_profile["url"]: lab_profile, derived["url"]: derived}
    )

    ids = [e["id"] for e in chain.fetch_structure_definition(derived["url"])["snapshot"]["element"]]
    assert ids == ["Observation", "Observation.category", "Observation.value[x]"]


def test_snapshot_with_unknown_base(lab_profile):
    """An unresolvable base definition cannot produce a snapshot."""
    lab_profile["baseDefinition"] = "https://example.org/missing"
    chain = chain_with(StructureDefinition={lab_profile["url"]: lab_profile})

    with pytest.raises(SnapshotGenerationError, match="is unknown"):
        chain.fetch_structure_definition(lab_profile["url"])


def test_snapshot_with_circular_base():
    """Profiles deriving from each other are rejected."""
    first = {"url": "https://example.org/a", "baseDefinition": "https://example.org/b", "differential": {"element": []}}
    second = {"url": "https://example.org/b", "baseDefinition": "https://example.org/a", "differential": {"element": []}}
    chain = chain_with(StructureDefinition={first["url"]: first, second["url"]: second})

    with pytest.raises(SnapshotGenerationError, match="circular"):
        chain.fetch_structure_definition(first["url"])


def test_snapshot_from_null_snapshot_and_differential():
    """Null snapshot and differential are treated as absent."""
    curated = {
        "resourceType": "StructureDefinition",
        "url": "https://example.org/fhir/StructureDefinition/Bare",
        "type": "Observation",
        "baseDefinition": OBSERVATION_URL,
        "snapshot": None,
        "differential": None,
    }
    chain = chain_with(StructureDefinition={curated["url"]: curated})

    profile = chain.fetch_structure_definition(curated["url"])

    assert [e["id"] for e in profile["snapshot"]["element"]] == ["Observation"]


def test_null_terminology_content_is_treated_as_empty():
    """Curated code systems and value sets with null members do not break lookups."""
    code_system = {
        "resourceType": "CodeSystem",
        "url": "https://example.org/cs",
        "content": "complete",
        "concept": None,
    }
    value_set = {"resourceType": "ValueSet", "url": "https://example.org/vs", "compose": None}
    chain = chain_with(
        CodeSystem={code_system["url"]: code_system},
        ValueSet={value_set["url"]: value_set},
    )

    assert not chain.validate_code(code_system["url"], "a").valid
    assert not chain.validate_code(
        code_system["url"], "a", value_set_url=value_set["url"]
    ).valid


def test_chain_without_snapshot_provider(lab_profile):
    """Snapshots are only generated by a capable provider."""
    chain = ValidationSupportChain(
        PrePopulatedValidationSupport(
            {ResourceKind.STRUCTURE_DEFINITION: {lab_profile["url"]: lab_profile}}
        )
    )
    with pytest.raises(SnapshotGenerationError):
        chain.fetch_structure_definition(lab_profile["url"])


def test_in_memory_terminology_uses_known_code_systems():
    """Codes of built-in code systems are validated with their display."""
    chain = build_support_chain({})

    result = chain.validate_code(CATEGORY_SYSTEM, "laboratory")
    assert result.valid
    assert result.display == "Laboratory"

    assert not chain.validate_code(CATEGORY_SYSTEM, "astrology").valid


def test_nested_concepts_are_found():
    """Child concepts count as members of the code system."""
    chain = build_support_chain({})
    assert chain.validate_code("http://hl7.org/fhir/observation-status", "corrected").valid


def test_curated_code_system_overrides_default():
    """A curated code system replaces the built-in concepts."""
    curated = {
        "resourceType": "CodeSystem",
        "url": CATEGORY_SYSTEM,
        "content": "complete",
        "concept": [{"code": "astrology", "display": "Astrology"}],
    }
    chain = chain_with(CodeSystem={CATEGORY_SYSTEM: curated})

    assert chain.validate_code(CATEGORY_SYSTEM, "astrology").valid
    assert not chain.validate_code(CATEGORY_SYSTEM, "laboratory").valid


def test_fragment_code_system_is_not_judged():
    """Incomplete code systems cannot prove a code unknown."""
    fragment = {
        "resourceType": "CodeSystem",
        "url": "https://example.org/cs",
        "content": "fragment",
        "concept": [{"code": "a"}],
    }
    chain = chain_with(CodeSystem={fragment["url"]: fragment})
    assert chain.validate_code(fragment["url"], "b") is None


def test_value_set_membership():
    """Value sets include enumerated concepts or whole code systems."""
    value_set = {
        "resourceType": "ValueSet",
        "url": "https://example.org/vs/lab",
        "compose": {
            "include": [
                {"system": CATEGORY_SYSTEM, "concept": [{"code": "laboratory"}]},
                {"system": "http://loinc.org"},
            ]
        },
    }
    chain = chain_with(ValueSet={value_set["url"]: value_set})

    assert chain.validate_code(CATEGORY_SYSTEM, "laboratory", value_set_url=value_set["url"]).valid
    assert not chain.validate_code(CATEGORY_SYSTEM, "imaging", value_set_url=value_set["url"]).valid
    assert chain.validate_code("http://loinc.org", "789-8", value_set_url=value_set["url"]).valid


@pytest.mark.parametrize(
    "number,digit", [("789", 8), ("2339", 0), ("8867", 4), ("718", 7)]
)
def test_loinc_check_digit(number, digit):
    """The LOINC mod 10 check digit is computed from the numeric part."""
    assert loinc_check_digit(number) == digit


@pytest.mark.parametrize(
    "system,code,valid",
    [
        ("http://loinc.org", "789-8", True),
        ("http://loinc.org", "789-7", False),
        ("http://loinc.org", "LA6576-8", True),
        ("http://unitsofmeasure.org", "10*6/uL", True),
        ("http://unitsofmeasure.org", "mm Hg", False),
        ("urn:ietf:bcp:47", "de-DE", True),
        ("urn:iso:std:iso:3166", "DE", True),
        ("urn:iso:std:iso:3166", "Germany", False),
    ],
)
def test_common_code_systems(system, code, valid):
    """Common vocabularies are judged without being loaded."""
    chain = build_support_chain({})
    assert chain.is_code_system_supported(system)
    assert chain.validate_code(system, code).valid is valid


def test_unknown_code_system_has_no_answer():
    """Nobody in the chain judges an unknown vocabulary."""
    chain = build_support_chain({})
    assert not chain.is_code_system_supported("https://example.org/private")
    assert chain.validate_code("https://example.org/private", "x") is None
