"""
Tests for Orphan Reconciliation
===============================
"""

import pytest
from unittest.mock import patch

from feedwarden.maintenance.orphan_reconciler import OrphanReconciler
from feedwarden.utils.exceptions import DatabaseError, ReconciliationError


@pytest.fixture
def reconciler(db_connection):
    return OrphanReconciler(db_connection)


def test_deletes_only_articles_of_inactive_sources(reconciler, make_feed, make_article, article_repo):
    make_feed("alpha", active=True)
    make_feed("beta", active=False)
    a1 = make_article("https://alpha.com/1", source_id="alpha")
    a2 = make_article("https://beta.com/2", source_id="beta")
    a3 = make_article("https://manual.com/3", source_id=None)

    result = reconciler.reconcile()

    assert result.aborted is False
    assert result.deleted_count == 1
    assert result.active_source_ids == ["alpha"]
    assert article_repo.get_article(a1.id) is not None
    assert article_repo.get_article(a2.id) is None
    assert article_repo.get_article(a3.id) is not None


def test_articles_of_removed_feeds_are_deleted(reconciler, make_feed, make_article, article_repo, feed_repo):
    make_feed("alpha")
    gone = make_feed("gamma")
    orphan = make_article("https://gamma.com/1", source_id="gamma")
    feed_repo.delete_feed(gone.id)

    assert reconciler.reconcile().deleted_count == 1
    assert article_repo.get_article(orphan.id) is None


def test_empty_active_set_aborts_by_default(reconciler, make_feed, make_article, article_repo):
    make_feed("alpha", active=False)
    article = make_article("https://alpha.com/1", source_id="alpha")

    result = reconciler.reconcile()

    assert result.aborted is True
    assert result.deleted_count == 0
    assert "no active feeds" in result.reason
    assert article_repo.get_article(article.id) is not None


def test_empty_active_set_deletes_when_allowed(reconciler, make_article, article_repo):
    sourced = make_article("https://alpha.com/1", source_id="alpha")
    unsourced = make_article("https://manual.com/1", source_id=None)

    result = reconciler.reconcile(allow_empty_active_set=True)

    assert result.aborted is False
    assert result.deleted_count == 1
    assert article_repo.get_article(sourced.id) is None
    assert article_repo.get_article(unsourced.id) is not None


def test_failed_feed_load_raises_and_deletes_nothing(reconciler, make_article, article_repo):
    article = make_article("https://alpha.com/1", source_id="alpha")

    with patch.object(
        reconciler.feed_repo, "get_active_source_ids", side_effect=DatabaseError("disk I/O error")
    ):
        with pytest.raises(ReconciliationError):
            reconciler.reconcile(allow_empty_active_set=True)

    assert article_repo.get_article(article.id) is not None


def test_second_run_deletes_nothing(reconciler, make_feed, make_article):
    make_feed("alpha")
    make_article("https://beta.com/1", source_id="beta")

    assert reconciler.reconcile().deleted_count == 1
    assert reconciler.reconcile().deleted_count == 0
