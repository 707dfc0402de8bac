from sqlalchemy.exc import OperationalError

from backend.app.models.resume import ResumeSubmission
from backend.app.schemas.candidate_profile import ParsedProfile
from backend.app.services import identity as identity_service
from backend.app.services.identity import (
    find_root_submission_id,
    list_versions,
    next_version_number,
    resolve_candidate_identity,
)
from backend.app.services.intake import store_resume


def _store(db, *, name="Asha Rao", email="a@x.com", file_name="cv.pdf"):
    sub, identity = store_resume(
        db,
        profile=ParsedProfile(name=name, email=email, skills=["python"]),
        file_name=file_name,
    )
    return sub, identity


def test_first_submission_is_root_v1(db_session):
    sub, identity = _store(db_session)
    assert identity.is_duplicate is False
    assert sub.parent_id is None
    assert sub.version_number == 1
    assert sub.root_id == sub.id


def test_resubmission_by_email_is_next_version_of_root(db_session):
    root, _ = _store(db_session)
    v2, identity = _store(db_session, name="A. Rao", email="  A@X.COM ")
    assert identity.is_duplicate is True
    assert identity.root_id == root.id
    assert v2.parent_id == root.id
    assert v2.version_number == 2
    assert v2.email == "a@x.com"

    # The third upload still points at the root, never at v2.
    v3, _ = _store(db_session)
    assert v3.parent_id == root.id
    assert v3.version_number == 3


def test_name_is_fallback_when_email_differs(db_session):
    root, _ = _store(db_session, name="Ravi Kumar", email="ravi@old.com")
    sub, identity = _store(db_session, name="  ravi kumar ", email="ravi@new.com")
    assert identity.is_duplicate is True
    assert sub.parent_id == root.id
    assert sub.version_number == 2


def test_email_match_beats_name_match(db_session):
    by_name, _ = _store(db_session, name="Same Name", email="first@x.com")
    by_email, _ = _store(db_session, name="Other Person", email="second@x.com")
    assert find_root_submission_id(db_session, email="second@x.com", name="Same Name") == by_email.id
    assert by_name.id != by_email.id


def test_no_email_no_name_is_new_candidate(db_session):
    identity = resolve_candidate_identity(db_session, email=None, name="   ")
    assert identity.is_duplicate is False
    assert identity.parent_id is None
    assert identity.version_number == 1


def test_versions_dense_and_single_root(db_session):
    for _ in range(4):
        _store(db_session)
    rows = db_session.query(ResumeSubmission).order_by(ResumeSubmission.id).all()
    roots = [r for r in rows if r.parent_id is None]
    assert len(roots) == 1
    assert sorted(r.version_number for r in rows) == [1, 2, 3, 4]
    assert next_version_number(db_session, roots[0].id) == 5


def test_list_versions_from_any_member_newest_first(db_session):
    root, _ = _store(db_session)
    _store(db_session)
    v3, _ = _store(db_session)
    _store(db_session, name="Someone Else", email="else@x.com")

    from_root = [v.version_number for v in list_versions(db_session, root.id)]
    from_v3 = [v.version_number for v in list_versions(db_session, v3.id)]
    assert from_root == [3, 2, 1]
    assert from_v3 == from_root
    assert list_versions(db_session, 999999) == []


def test_unreadable_chain_stores_new_root_instead_of_second_v1(db_session, monkeypatch):
    root, _ = _store(db_session)

    def locked(*args, **kwargs):
        raise OperationalError("SELECT max(version_number)", {}, Exception("database is locked"))

    monkeypatch.setattr(identity_service, "or_", locked)
    assert next_version_number(db_session, root.id) is None
    sub, identity = _store(db_session, file_name="cv-2.pdf")
    monkeypatch.undo()

    assert identity.is_duplicate is False
    assert identity.parent_id is None
    assert sub.parent_id is None
    assert sub.version_number == 1
    # The original chain did not gain a second version 1.
    assert [(s.id, s.version_number) for s in list_versions(db_session, root.id)] == [(root.id, 1)]
