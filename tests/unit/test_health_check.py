#!/usr/bin/env python3
"""
Unit tests for the database health check.
"""

from sqlalchemy import text

from db.health_check import CHECK_URL, run_health_check


def test_healthy_database(store, add_sites):
    add_sites("a.test", "b.test")

    report = run_health_check(store.db)

    assert report.healthy
    assert report.errors == []
    assert report.warnings == []
    # config, connection, integrity, write, read, delete, total, unvisited
    assert report.ok == 8
    assert report.summary() == "Summary: 8 OK, 0 errors, 0 warnings"


def test_check_row_is_removed(store, add_sites):
    add_sites("a.test")

    run_health_check(store.db)

    assert store.count_sites() == 1
    with store.db.get_session() as session:
        assert session.execute(
            text("SELECT COUNT(*) FROM site WHERE url = :url"), {"url": CHECK_URL}
        ).scalar_one() == 0


def test_empty_database_is_an_error(db_manager):
    report = run_health_check(db_manager)

    assert not report.healthy
    assert report.errors == ["No sites in database"]
    assert report.warnings == ["No unvisited sites in database"]
    assert report.summary() == "Summary: 6 OK, 1 errors, 1 warnings"


def test_all_sites_visited_is_a_warning(store, add_sites):
    (site_id,) = add_sites("a.test")
    store.mark_handled(site_id)

    report = run_health_check(store.db)

    assert report.healthy
    assert report.warnings == ["No unvisited sites in database"]


def test_integrity_failure_is_reported(db_manager, add_sites, monkeypatch):
    add_sites("a.test")
    monkeypatch.setattr(db_manager, "integrity_check", lambda max_errors=3: ["row 1 missing from index"])

    report = run_health_check(db_manager)

    assert not report.healthy
    assert report.errors == ["Database integrity failed, your database may be corrupt"]
