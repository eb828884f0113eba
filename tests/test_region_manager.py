"""
Tests for RegionManager.
"""

import pytest

from geosentinel import Region, RegionManager


@pytest.fixture
def manager():
    return RegionManager()


def test_create_region(manager):
    """Test creating a region."""
    region = manager.create_region(name="Home", latitude=32.5, longitude=-117.0, radius=150)

    assert region.name == "Home"
    assert region.radius == 150
    assert manager.get_region(region.id) is region
    assert region.id in manager
    assert len(manager) == 1


def test_duplicate_region_id(manager):
    """Test that duplicate region IDs are rejected."""
    manager.create_region(name="Home", latitude=0, longitude=0, id="home")

    with pytest.raises(ValueError, match="already exists"):
        manager.create_region(name="Home again", latitude=1, longitude=1, id="home")


def test_insertion_order_is_kept(manager):
    """Test regions come back in insertion order."""
    for name in ("c", "a", "b"):
        manager.create_region(name=name, latitude=0, longitude=0, id=name)

    assert [r.id for r in manager.all_regions()] == ["c", "a", "b"]


def test_update_region_keeps_position(manager):
    """Test replacing a region definition in place."""
    manager.create_region(name="First", latitude=0, longitude=0, id="first")
    manager.create_region(name="Second", latitude=0, longitude=0, id="second")

    manager.update_region(Region(name="Renamed", latitude=1, longitude=1, id="first"))

    assert [r.name for r in manager.all_regions()] == ["Renamed", "Second"]


def test_update_unknown_region(manager):
    """Test updating a missing region raises."""
    with pytest.raises(ValueError, match="does not exist"):
        manager.update_region(Region(name="Ghost", latitude=0, longitude=0))


def test_delete_region(manager):
    """Test deleting a region."""
    region = manager.create_region(name="Home", latitude=0, longitude=0)

    removed = manager.delete_region(region.id)

    assert removed is region
    assert region.id not in manager

    with pytest.raises(ValueError):
        manager.delete_region(region.id)


def test_toggle_enabled(manager):
    """Test enabling and disabling regions."""
    home = manager.create_region(name="Home", latitude=0, longitude=0)
    work = manager.create_region(name="Work", latitude=0, longitude=0)

    manager.toggle_enabled(home.id)
    assert home.enabled is False
    assert manager.enabled_regions() == [work]

    manager.set_enabled(home.id, True)
    assert manager.enabled_regions() == [home, work]

    with pytest.raises(ValueError):
        manager.toggle_enabled("missing")


def test_dump_and_load(manager):
    """Test serializing and restoring the region list."""
    manager.create_region(name="Home", latitude=32.5, longitude=-117.0, id="home")
    manager.create_region(name="Gym", latitude=32.6, longitude=-117.1, enabled=False, id="gym")

    restored = RegionManager()
    restored.load(manager.dump())

    assert [r.id for r in restored.all_regions()] == ["home", "gym"]
    assert restored.get_region("gym").enabled is False


def test_load_skips_unreadable_entries(manager):
    """Test that broken entries are skipped, not fatal."""
    manager.load(
        [
            {"id": "ok", "name": "Ok", "latitude": 1, "longitude": 2},
            {"id": "no-coords", "name": "Broken"},
            {"id": "bad-lat", "name": "Broken", "latitude": "north", "longitude": 2},
        ]
    )

    assert [r.id for r in manager.all_regions()] == ["ok"]


def test_registry_keeps_its_own_copy(manager):
    """Test that managing a region never mutates the caller's object."""
    original = Region(name="Home", latitude=0, longitude=0, id="home")

    stored = manager.add_region(original)
    manager.toggle_enabled("home")

    assert stored is not original
    assert original.enabled is True
    assert manager.get_region("home").enabled is False

    renamed = Region(name="Renamed", latitude=0, longitude=0, id="home")
    manager.update_region(renamed)
    manager.toggle_enabled("home")

    assert renamed.enabled is True
    assert manager.get_region("home").name == "Renamed"
