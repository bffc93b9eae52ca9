import json

import pytest

from productwatch.db import Database
from productwatch.models import FetchSuccess
import watch_monitor


def test_main_without_action_prints_help(tmp_path, capsys):
    assert watch_monitor.main(["--database-url", str(tmp_path / "cli.db")]) == 1
    assert "ProductWatch monitoring agent" in capsys.readouterr().out


def test_main_init_creates_database(tmp_path):
    db_path = tmp_path / "cli.db"
    assert watch_monitor.main(["--init", "--database-url", str(db_path)]) == 0
    assert db_path.exists()


def test_main_add_watch_and_check(tmp_path, capsys, monkeypatch):
    db_path = tmp_path / "cli.db"
    assert (
        watch_monitor.main(
            [
                "--database-url",
                str(db_path),
                "--add-watch",
                "https://shop.example.com/widget",
                "--tenant",
                "T",
            ]
        )
        == 0
    )
    created = json.loads(capsys.readouterr().out)
    assert created["source_url"] == "https://shop.example.com/widget"

    def fake_fetch(self, url):
        return FetchSuccess(
            url=url,
            html='<h1>Widget</h1><div class="price">$19.99</div>',
            status_code=200,
            attempts=1,
        )

    monkeypatch.setattr("productwatch.fetcher.ResilientFetcher.fetch", fake_fetch)
    assert watch_monitor.main(["--database-url", str(db_path), "--check", str(created["id"])]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["ok"] is True
    assert result["changed"] is False
    assert result["snapshot"]["price"] == 19.99

    watch = Database(path=db_path).get_watch(created["id"])
    assert watch.last_status == "ok"


def test_main_check_unknown_watch_fails(tmp_path):
    assert watch_monitor.main(["--database-url", str(tmp_path / "cli.db"), "--check", "7"]) == 1


def test_main_process_events_and_export(tmp_path):
    db_path = tmp_path / "cli.db"
    db = Database(path=db_path)
    db.initialize()
    watch = db.create_watch("https://shop.example.com/widget")
    db.insert_event(
        watch_id=watch.id,
        event_type="change_detected",
        severity="info",
        payload={"diff": {"title": {"from": "a", "to": "b"}}},
    )
    export_path = tmp_path / "events.xlsx"

    code = watch_monitor.main(
        [
            "--database-url",
            str(db_path),
            "--process-events",
            "--export-events",
            str(export_path),
        ]
    )

    assert code == 0
    assert db.fetch_pending_events() == []
    assert [n.title for n in db.list_notifications()] == ["Change detected"]
    assert export_path.exists()


def test_main_add_webhook_and_rule(tmp_path, capsys):
    db_path = tmp_path / "cli.db"
    base = ["--database-url", str(db_path)]

    assert (
        watch_monitor.main(
            base + ["--add-webhook", "https://hooks.example.com/in", "--secret", "shh", "--tenant", "T"]
        )
        == 0
    )
    webhook = json.loads(capsys.readouterr().out)

    action = {"type": "webhook", "url": "https://hooks.example.com/in", "webhook_id": webhook["id"]}
    code = watch_monitor.main(
        base
        + [
            "--add-rule",
            "change_detected",
            "--action",
            json.dumps(action),
            "--condition",
            '{"price_pct_change": 5}',
            "--tenant",
            "T",
            "--rule-name",
            "Price moves",
        ]
    )
    assert code == 0
    created = json.loads(capsys.readouterr().out)

    db = Database(path=db_path)
    assert db.get_webhook(webhook["id"]).secret == "shh"
    rule = db.get_rule(created["id"])
    assert rule.action == action
    assert rule.condition == {"price_pct_change": 5}
    assert rule.tenant_id == "T"
    assert rule.name == "Price moves"

    assert watch_monitor.main(base + ["--delete-rule", str(rule.id)]) == 0
    assert db.get_rule(rule.id) is None
    assert watch_monitor.main(base + ["--delete-rule", str(rule.id)]) == 1


def test_main_add_rule_requires_json_object_action(tmp_path):
    base = ["--database-url", str(tmp_path / "cli.db"), "--add-rule", "change_detected"]

    with pytest.raises(SystemExit):
        watch_monitor.main(base)
    with pytest.raises(SystemExit):
        watch_monitor.main(base + ["--action", "not json"])
    with pytest.raises(SystemExit):
        watch_monitor.main(base + ["--action", "[1, 2]"])
