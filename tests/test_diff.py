from productwatch.diff import diff_snapshots, is_substantive
from productwatch.models import Snapshot


def make_snapshot(**overrides) -> Snapshot:
    values = {
        "url": "https://shop.example.com/widget",
        "title": "Widget",
        "price": 19.99,
        "images": ["/a.jpg", "/b.jpg"],
        "specs": {"Weight": "1 kg", "Colour": "Red"},
        "fetched_at": "2026-01-01T00:00:00+00:00",
    }
    values.update(overrides)
    return Snapshot(**values)


def test_diff_without_previous_snapshot_is_initial_marker():
    new = make_snapshot()
    diff = diff_snapshots(None, new)

    assert diff == {"_type": "initial_snapshot", "new": new.to_dict()}
    assert is_substantive(diff) is False


def test_diff_identical_snapshots_is_empty():
    snapshot = make_snapshot()
    diff = diff_snapshots(snapshot, make_snapshot(fetched_at="2026-01-02T00:00:00+00:00"))

    assert diff == {}
    assert is_substantive(diff) is False


def test_diff_reports_title_change_and_treats_empty_as_missing():
    assert diff_snapshots(make_snapshot(title=None), make_snapshot(title="")) == {}

    diff = diff_snapshots(make_snapshot(title=None), make_snapshot(title="Widget 2"))
    assert diff == {"title": {"from": None, "to": "Widget 2"}}
    assert is_substantive(diff)


def test_diff_reports_price_changes_including_null_transitions():
    diff = diff_snapshots(make_snapshot(price=19.99), make_snapshot(price=24.99))
    assert diff["price"] == {"from": 19.99, "to": 24.99}

    diff = diff_snapshots(make_snapshot(price=None), make_snapshot(price=10.0))
    assert diff["price"] == {"from": None, "to": 10.0}

    assert "price" not in diff_snapshots(make_snapshot(price=None), make_snapshot(price=None))


def test_diff_specs_added_removed_changed():
    old = make_snapshot(specs={"Weight": "1 kg", "Colour": "Red", "Size": "M"})
    new = make_snapshot(specs={"Weight": "1 kg", "Colour": "Blue", "Material": "Steel"})

    diff = diff_snapshots(old, new)

    assert diff == {
        "specs": {
            "added": {"Material": "Steel"},
            "removed": {"Size": "M"},
            "changed": {"Colour": {"from": "Red", "to": "Blue"}},
        }
    }


def test_diff_images_uses_set_semantics():
    old = make_snapshot(images=["/a.jpg", "/b.jpg", "/b.jpg"])
    reordered = make_snapshot(images=["/b.jpg", "/a.jpg"])
    assert diff_snapshots(old, reordered) == {}

    new = make_snapshot(images=["/b.jpg", "/c.jpg"])
    assert diff_snapshots(old, new) == {
        "images": {"added": ["/c.jpg"], "removed": ["/a.jpg"]}
    }


def test_is_substantive_ignores_meta_keys_only():
    assert is_substantive({}) is False
    assert is_substantive({"_type": "initial_snapshot", "new": {}}) is False
    assert is_substantive({"images": {"added": ["/x.jpg"], "removed": []}}) is True
