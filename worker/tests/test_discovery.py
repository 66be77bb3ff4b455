from crm_research.core import discovery
from crm_research.core.models import DiscoverySeed
from crm_research.etl.filters import hard_filter_candidates
from crm_research.etl.transform import seeds_to_candidates


def test_build_discovery_query_similar_mode():
    profile = discovery.DiscoveryProfile(
        company_name="Nordic Gadgets",
        country="Sweden",
        region="Skåne",
        industry="Electronics",
        segment_focus="B2C",
    )

    assert (
        discovery.build_discovery_query(profile)
        == 'companies similar to "Nordic Gadgets" Electronics B2C reseller Skåne Sweden'
    )


def test_build_discovery_query_profile_mode_skips_name_and_mixed_segment():
    profile = discovery.DiscoveryProfile(company_name="Nordic Gadgets", country="Norway", mode="profile")

    assert discovery.build_discovery_query(profile) == "companies reseller Norway"


def test_clamp_max_results():
    assert discovery.clamp_max_results(1) == 6
    assert discovery.clamp_max_results(50) == 20
    assert discovery.clamp_max_results(None) == 12
    assert discovery.clamp_max_results("bad") == 12


def test_guess_name_prefers_title_then_domain():
    assert discovery.guess_name("Gadget House | Home", "https://gadgethouse.se") == "Gadget House"
    assert discovery.guess_name("Mobile Planet - Phones – Cases", "https://x.se") == "Mobile Planet"
    assert discovery.guess_name("", "https://www.ljud-bild.se/") == "ljud bild"
    assert discovery.guess_name("", "") == ""


def test_rows_to_seeds_skips_rows_without_link():
    rows = [
        {"title": "Gadget House", "link": "https://gadgethouse.se", "snippet": "x" * 600},
        {"title": "No link", "link": ""},
    ]

    seeds = discovery.rows_to_seeds(rows, "serper")

    assert len(seeds) == 1
    assert seeds[0].source_type == "serper"
    assert seeds[0].website == "https://gadgethouse.se"
    assert len(seeds[0].snippet) == discovery.SNIPPET_LENGTH


def test_merge_seeds_dedupes_and_excludes_target_domain():
    serper_seeds = [
        DiscoverySeed(name="Target Co", source_url="https://target.se", source_type="serper", website="https://target.se"),
        DiscoverySeed(name="Acme", source_url="https://acme.se", source_type="serper", website="https://acme.se"),
    ]
    tavily_seeds = [
        DiscoverySeed(name="ACME", source_url="https://other.se", source_type="tavily", website="https://other.se"),
        DiscoverySeed(name="Acme Nordic", source_url="https://www.acme.se", source_type="tavily", website="https://www.acme.se"),
        DiscoverySeed(name="Beta", source_url="https://beta.se", source_type="tavily", website="https://beta.se"),
    ]

    merged = discovery.merge_seeds(
        [("serper", serper_seeds), ("tavily", tavily_seeds)], max_results=10, exclude_domain="https://www.target.se"
    )

    assert [(seed.name, seed.source_type) for seed in merged] == [("Acme", "serper"), ("Beta", "tavily")]


def test_generic_title_and_company_suffix():
    assert discovery.is_generic_title("Top 10 phone retailers in Sweden")
    assert discovery.is_generic_title("Largest suppliers by revenue")
    assert discovery.is_generic_title("x" * 91)
    assert not discovery.is_generic_title("Gadget House")
    assert discovery.has_company_suffix("Mobile Planet A/S")
    assert discovery.has_company_suffix("Gadget House Ltd.")
    assert not discovery.has_company_suffix("Absolut Gadgets")


def test_merge_seeds_renames_listicle_titles_to_domain_label():
    rows = [{"title": "Best phone accessories shop in Sweden", "link": "https://elkjop.se", "snippet": "Phones"}]

    merged = discovery.merge_seeds([("serper", discovery.rows_to_seeds(rows, "serper"))], max_results=10)

    assert [seed.name for seed in merged] == ["elkjop"]
    assert merged[0].website == "https://elkjop.se"
    kept = hard_filter_candidates(seeds_to_candidates(merged))
    assert [candidate.name for candidate in kept] == ["elkjop"]


def test_merge_seeds_drops_listicles_without_company_domain():
    seeds = [
        DiscoverySeed(name="Top 20 companies in Norway", source_url="https://best-companies.no", source_type="tavily"),
        DiscoverySeed(name="Best retailers", source_url="https://ab.se", source_type="tavily"),
        DiscoverySeed(name="Largest suppliers", source_url="https://market-nordic-ab.se", source_type="tavily"),
        DiscoverySeed(name="Ranking list", source_url="", source_type="tavily"),
    ]

    merged = discovery.merge_seeds([("tavily", seeds)], max_results=10)

    assert [seed.name for seed in merged] == ["market nordic ab"]


def test_merge_seeds_respects_max_results():
    seeds = [
        DiscoverySeed(name=f"Company {index}", source_url=f"https://c{index}.se", source_type="serper")
        for index in range(10)
    ]

    assert len(discovery.merge_seeds([("serper", seeds)], max_results=6)) == 6


def test_discover_external_seeds_merges_providers(monkeypatch):
    queries = []

    def fake_serper(query, max_results):
        queries.append((query, max_results))
        return [{"title": "Gadget House", "link": "https://gadgethouse.se", "snippet": "Electronics"}]

    def fake_tavily(query, max_results):
        raise RuntimeError("tavily down")

    monkeypatch.setattr(discovery.serper, "search", fake_serper)
    monkeypatch.setattr(discovery.tavily, "search", fake_tavily)

    result = discovery.discover_external_seeds(
        discovery.DiscoveryProfile(company_name="Nordic Gadgets", country="Sweden", max_results=3)
    )

    assert queries == [('companies similar to "Nordic Gadgets" reseller Sweden', 8)]
    assert [seed.name for seed in result.seeds] == ["Gadget House"]
    assert result.used_providers == ["serper"]
    assert result.to_dict() == {
        "query": 'companies similar to "Nordic Gadgets" reseller Sweden',
        "usedProviders": ["serper"],
        "seedCount": 1,
    }


def test_discover_external_seeds_without_results(monkeypatch):
    monkeypatch.setattr(discovery.serper, "search", lambda query, max_results: [])
    monkeypatch.setattr(discovery.tavily, "search", lambda query, max_results: [])

    result = discovery.discover_external_seeds(discovery.DiscoveryProfile(company_name="Acme"))

    assert result.seeds == []
    assert result.used_providers == []
