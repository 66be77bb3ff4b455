import psycopg2

from crm_research.core import research_config


def test_unique_trimmed_dedupes_and_caps():
    assert research_config.unique_trimmed([" a ", "a", "", None, "b", "c"], limit=2) == ["a", "b"]
    assert research_config.unique_trimmed("not a list") == []


def test_normalize_caps_lists_and_clamps_reminders():
    payload = {
        "vendorWebsites": [f"https://v{index}.se" for index in range(40)],
        "industries": ["Retail", " Retail ", "Telecom"],
        "regionsByCountry": [
            {"country": "se", "regions": ["Skane", "Skane", "Halland"]},
            {"country": "SE", "regions": ["Ignored"]},
            {"country": "", "regions": ["Nowhere"]},
            "junk",
        ],
        "requiredCustomerFields": ["name", "email", "seller"],
        "defaultScope": "country",
        "reminderDaysBeforeDeadline": 500,
        "inactivityReminderDays": "0",
        "remindersEnabled": False,
        "notifyViaSlack": "yes",
        "extraInstructions": "  Focus on B2B  ",
    }

    config = research_config.normalize_research_config(payload)

    assert len(config.vendor_websites) == 30
    assert config.industries == ["Retail", "Telecom"]
    assert [(group.country, group.regions) for group in config.regions_by_country] == [("SE", ["Skane", "Halland"])]
    assert config.required_customer_fields == ["name", "seller"]
    assert config.default_scope == "country"
    assert config.reminder_days_before_deadline == 60
    assert config.inactivity_reminder_days == 1
    assert config.reminders_enabled is False
    assert config.notify_via_slack is False
    assert config.extra_instructions == "Focus on B2B"


def test_normalize_empty_payload_uses_defaults():
    config = research_config.normalize_research_config(None)
    defaults = research_config.default_research_config()

    assert config.vendor_websites == defaults.vendor_websites
    assert config.industries == research_config.DEFAULT_INDUSTRIES
    assert config.countries == ["SE", "NO", "DK", "FI"]
    assert config.default_scope == "region"
    assert config.reminder_days_before_deadline == 7
    assert config.inactivity_reminder_days == 30
    assert config.reminders_enabled is True
    assert config.brand_websites == []


def test_to_dict_uses_camel_case_keys():
    data = research_config.default_research_config().to_dict()

    assert data["defaultScope"] == "region"
    assert data["regionsByCountry"][0]["country"] == "SE"
    assert "reminderDaysBeforeDeadline" in data


def test_get_research_config_falls_back_on_db_error(monkeypatch, caplog):
    def broken(key):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(research_config.db, "get_app_setting", broken)

    with caplog.at_level("WARNING"):
        config = research_config.get_research_config()

    assert config == research_config.default_research_config()
    assert "using defaults" in " ".join(caplog.messages)


def test_get_research_config_missing_row_and_stored_value(monkeypatch):
    monkeypatch.setattr(research_config.db, "get_app_setting", lambda key: None)
    assert research_config.get_research_config() == research_config.default_research_config()

    monkeypatch.setattr(research_config.db, "get_app_setting", lambda key: {"defaultScope": "country"})
    assert research_config.get_research_config().default_scope == "country"


def test_save_research_config_persists_normalized_dict(monkeypatch):
    saved = {}
    monkeypatch.setattr(research_config.db, "upsert_app_setting", lambda key, value: saved.update({key: value}))

    config = research_config.save_research_config({"brandWebsites": ["https://brand.se", "https://brand.se"]})

    assert config.brand_websites == ["https://brand.se"]
    assert saved["research_config"]["brandWebsites"] == ["https://brand.se"]
    assert saved["research_config"]["vendorWebsites"] == ["https://www.vendora.se"]
