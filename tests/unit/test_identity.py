"""
Unit tests for identity and fingerprint derivation
"""

from ingestion.transformers.identity import (
    derive_fingerprint,
    derive_identity,
    find_collisions,
    identity_key_source,
)


class TestDeriveIdentity:
    """Identity is deterministic and insensitive to case and surrounding whitespace"""

    def test_identity_is_32_hex_chars(self, make_raw):
        company_id = derive_identity(make_raw("Beacon Pointe Advisors"))

        assert len(company_id) == 32
        int(company_id, 16)

    def test_case_and_whitespace_insensitive(self, make_raw):
        a = make_raw("Beacon Pointe Advisors", hq="Newport Beach, CA")
        b = make_raw("  BEACON pointe advisors ", hq="newport beach, ca  ")

        assert derive_identity(a) == derive_identity(b)

    def test_only_identity_fields_matter(self, make_raw):
        a = make_raw("Acme", industry="Technology", yoi="2019")
        b = make_raw("Acme", industry="Health Care", yoi="2023", logo="/other.png")

        assert derive_identity(a) == derive_identity(b)

    def test_shared_logo_different_hq_are_distinct(self, make_raw):
        chile = make_raw("ON*NET Fibra", hq="Santiago, Chile", logo="/onnet.png")
        colombia = make_raw("ON*NET Fibra", hq="Bogota, Colombia", logo="/onnet.png")

        assert derive_identity(chile) != derive_identity(colombia)

    def test_key_source_joins_normalized_fields(self, make_raw):
        raw = make_raw(" Acme ", hq="Austin, TX")

        assert identity_key_source(raw) == "acme|austin, tx"
        assert identity_key_source(raw, ("name", "logo")) == "acme|/content/dam/kkr/portfolio/-acme-.png"

    def test_missing_fields_still_hash(self, make_raw):
        raw = make_raw("", hq="")

        assert len(derive_identity(raw)) == 32


class TestDeriveFingerprint:
    """Fingerprint tracks business content only"""

    def test_stable_for_identical_content(self, make_raw):
        assert derive_fingerprint(make_raw("Acme")) == derive_fingerprint(make_raw("Acme"))

    def test_ignores_sorting_name(self, make_raw):
        a = make_raw("Acme", sortingName="acme")
        b = make_raw("Acme", sortingName="zzz acme")

        assert derive_fingerprint(a) == derive_fingerprint(b)

    def test_changes_when_business_field_changes(self, make_raw):
        base = derive_fingerprint(make_raw("Acme"))

        for field, value in [
            ("industry", "Health Care"),
            ("description", "<p>New text</p>"),
            ("relatedLinkTwo", "content-id-123"),
            ("yoi", "2024"),
        ]:
            assert derive_fingerprint(make_raw("Acme", **{field: value})) != base, field


class TestFindCollisions:
    """Collision analysis for candidate key compositions"""

    def test_exact_duplicates_are_not_collisions(self, make_raw):
        records = [make_raw("Acme"), make_raw("Acme")]

        assert find_collisions(records) == {}

    def test_reports_same_key_different_content(self, make_raw):
        a = make_raw("Acme", industry="Technology")
        b = make_raw("Acme", industry="Industrials")
        other = make_raw("Globex")

        collisions = find_collisions([a, b, other])

        assert list(collisions) == ["acme|new york, ny"]
        assert len(collisions["acme|new york, ny"]) == 2

    def test_alternative_key_composition(self, make_raw):
        chile = make_raw("ON*NET Fibra", hq="Santiago, Chile", logo="/onnet.png")
        colombia = make_raw("ON*NET Fibra", hq="Bogota, Colombia", logo="/onnet.png")

        assert find_collisions([chile, colombia], ("name", "hq")) == {}
        assert len(find_collisions([chile, colombia], ("logo",))) == 1
