from productwatch.db import Database
from productwatch.rules import RuleEvaluator, condition_matches, price_change_percent


def price_payload(start, end) -> dict:
    return {"diff": {"price": {"from": start, "to": end}}}


def test_empty_condition_always_matches():
    assert condition_matches({}, {}) is True
    assert condition_matches(None, price_payload(1, 2)) is True


def test_price_threshold_boundaries():
    condition = {"price_pct_change": 5}
    assert condition_matches(condition, price_payload(100, 104)) is False
    assert condition_matches(condition, price_payload(100, 106)) is True
    assert condition_matches(condition, price_payload(100, 94)) is True
    assert condition_matches({"price_pct_change": 25}, price_payload(4, 5)) is True


def test_price_condition_requires_both_prices():
    condition = {"price_pct_change": 1}
    assert condition_matches(condition, price_payload(None, 10)) is False
    assert condition_matches(condition, price_payload(10, None)) is False
    assert condition_matches(condition, {"diff": {"title": {"from": "a", "to": "b"}}}) is False
    assert condition_matches(condition, {"diff": {"_type": "initial_snapshot"}}) is False
    assert condition_matches(condition, {"error": "HTTP 403"}) is False


def test_zero_starting_price_divides_by_one():
    assert price_change_percent(price_payload(0, 0.5)) == 50.0
    assert condition_matches({"price_pct_change": 40}, price_payload(0, 0.5)) is True


def test_unrecognized_condition_fails_open():
    assert condition_matches({"title_contains": "sale"}, {}) is True


def test_threshold_override_replaces_rule_percentage():
    condition = {"price_pct_change": 50}
    payload = price_payload(100, 104)
    assert condition_matches(condition, payload) is False
    assert condition_matches(condition, payload, threshold_override=3) is True


def test_rule_evaluator_scopes_rules_by_tenant(tmp_path):
    db = Database(path=tmp_path / "rules.db")
    db.initialize()
    watch = db.create_watch("https://shop.example.com/p", tenant_id="U")
    db.insert_rule("change_detected", {"type": "app_notification"}, tenant_id="T")
    global_rule = db.insert_rule(
        "change_detected",
        {"type": "app_notification"},
        condition={"price_pct_change": 5},
    )
    event = db.insert_event(
        watch_id=watch.id,
        tenant_id="U",
        event_type="change_detected",
        severity="info",
        payload=price_payload(100, 106),
    )

    evaluator = RuleEvaluator(database=db)
    rules = evaluator.select(event)

    assert [rule.id for rule in rules] == [global_rule.id]
    assert evaluator.matches(rules[0], event) is True
