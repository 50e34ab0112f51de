"""Tests for the User model: enum configuration, single-row writes, scopes and predicates."""

import pytest
from sqlalchemy import Integer, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.dialects import sqlite

from app.core.enumerize import EnumValue
from app.core.errors import InvalidMemberError, UnknownCodeError, ValidationError
from app.models.user import User


# ============== Configuration ==============

class TestEnumConfiguration:

    def test_status_is_explicit_mapping_on_integer_column(self, db_engine):
        status_column = next(c for c in inspect(db_engine).get_columns("users") if c["name"] == "status")

        assert isinstance(status_column["type"], Integer)
        assert User.enums["status"].values == ["active", "inactive", "suspended"]
        assert User.enums["status"].find_value("inactive").value == 1
        assert User.enums["status"].find_value("suspended").value == 3

    def test_role_is_positional(self):
        assert User.enums["role"].values == ["admin", "manager", "employee", "intern"]
        assert User.enums["role"].find_value("admin").value == 0
        assert User.enums["role"].default == "employee"

    def test_hobbies_is_multiple(self):
        assert User.enums["hobbies"].values == ["reading", "sports", "cooking", "gaming", "music", "travel"]
        assert User.enums["hobbies"].multiple is True

    def test_declared_options(self):
        assert User.enums["role"].predicates is True
        assert User.enums["status"].scope is True


# ============== Single-row writes ==============

class TestCreate:

    def test_saves_string_values(self, user_service, user_data, stored):
        user = user_service.create(user_data)

        assert user.status == "inactive"
        assert user.role == "admin"
        assert set(user.hobbies) == {"reading", "travel"}
        assert stored(user.email, "status") == 1
        assert stored(user.email, "role") == 0

    def test_saves_symbol_like_values(self, user_service, user_data, stored):
        user = user_service.create({**user_data, "status": User.enums["status"].find_value("suspended")})

        assert str(user.status) == "suspended"
        assert stored(user.email, "status") == 3

    def test_read_back_values_are_members(self, user_service, user_data, db_session):
        user_service.create(user_data)
        db_session.expire_all()

        user = user_service.find_by_email(user_data["email"])
        assert isinstance(user.status, EnumValue)
        assert isinstance(user.role, EnumValue)
        assert all(isinstance(h, EnumValue) for h in user.hobbies)

    def test_defaults(self, user_service, stored):
        user = user_service.create({"name": "Plain", "email": "plain@example.com"})

        assert user.role == "employee"
        assert user.status == "active"
        assert user.hobbies == []
        assert stored(user.email, "role") == 2
        assert stored(user.email, "status") == 0
        assert stored(user.email, "hobbies") == "[]"

    def test_defaults_on_new_instance(self):
        user = User(name="New", email="new@example.com")
        assert user.role == "employee"
        assert user.status == "active"
        assert user.hobbies == []

    def test_hobbies_stored_as_symbol_list(self, user_service, user_data, stored):
        user_service.create({**user_data, "hobbies": ["travel", "reading"]})
        assert stored(user_data["email"], "hobbies") == '["travel", "reading"]'

    def test_timestamps_set(self, user_service, user_data):
        user = user_service.create(user_data)
        assert user.created_at is not None
        assert user.updated_at is not None

    @pytest.mark.parametrize("missing", ["name", "email"])
    def test_presence_required(self, user_service, user_data, missing):
        with pytest.raises(ValidationError) as exc_info:
            user_service.create({**user_data, missing: "  "})
        assert exc_info.value.field == missing

    def test_missing_key_required(self, user_service, user_data):
        data = dict(user_data)
        del data["name"]
        with pytest.raises(ValidationError):
            user_service.create(data)

    def test_email_unique(self, user_service, user_data):
        user_service.create(user_data)
        with pytest.raises(ValidationError) as exc_info:
            user_service.create({**user_data, "name": "Other"})
        assert exc_info.value.field == "email"
        assert user_service.count() == 1

    def test_unknown_column_rejected(self, user_service, user_data):
        with pytest.raises(ValidationError):
            user_service.create({**user_data, "nickname": "tester"})

    def test_invalid_member_rejected(self, user_service, user_data):
        with pytest.raises(InvalidMemberError):
            user_service.create({**user_data, "status": "deleted"})
        assert user_service.count() == 0

    def test_invalid_assignment_fails_immediately(self):
        user = User(name="New", email="new@example.com")
        with pytest.raises(InvalidMemberError):
            user.role = "owner"
        with pytest.raises(InvalidMemberError):
            user.hobbies = ["reading", "skydiving"]
        assert user.role == "employee"


class TestUpdate:

    def test_update_status(self, user_service, user_data, stored):
        user = user_service.create({**user_data, "status": "active"})

        user_service.update(user, {"status": "suspended", "hobbies": ["music"]})

        assert user.status == "suspended"
        assert stored(user.email, "status") == 3
        assert stored(user.email, "hobbies") == '["music"]'

    def test_update_accepts_code(self, user_service, user_data):
        user = user_service.create(user_data)
        user_service.update(user, {"status": 0})
        assert user.status == "active"

    def test_update_keeps_own_email(self, user_service, user_data):
        user = user_service.create(user_data)
        user_service.update(user, {"email": user_data["email"], "name": "Renamed"})
        assert user.name == "Renamed"

    def test_update_email_taken(self, user_service, user_data):
        user_service.create(user_data)
        other = user_service.create({**user_data, "email": "other@example.com"})
        with pytest.raises(ValidationError):
            user_service.update(other, {"email": user_data["email"]})

    def test_failed_update_is_not_saved_by_later_commit(self, user_service, user_data, db_session):
        user = user_service.create(user_data)

        with pytest.raises(InvalidMemberError):
            user_service.update(user, {"name": "Half Applied", "status": "bogus"})
        with pytest.raises(ValidationError):
            user_service.update(user, {"status": "active", "name": " "})
        user_service.create({**user_data, "email": "other@example.com"})
        db_session.expire_all()

        reloaded = user_service.find_by_email(user_data["email"])
        assert reloaded.name == "Test User"
        assert reloaded.status == "inactive"

    def test_other_integrity_errors_propagate(self, user_service, user_data):
        first = user_service.create(user_data)
        other = user_service.create({**user_data, "email": "other@example.com"})

        with pytest.raises(IntegrityError):
            user_service.update(other, {"id": first.id})
        assert user_service.count() == 2

    def test_find_or_create_leaves_existing(self, user_service, user_data):
        user_service.create(user_data)

        user = user_service.find_or_create_by_email(user_data["email"], name="Changed", status="active")

        assert user.name == "Test User"
        assert user.status == "inactive"
        assert user_service.count() == 1

    def test_delete_by_email(self, user_service, user_data):
        user_service.create(user_data)
        assert user_service.delete_by_email(user_data["email"], "missing@example.com") == 1
        assert user_service.find_by_email(user_data["email"]) is None


# ============== Reads ==============

class TestReads:

    def test_unknown_code_fails_loudly(self, db_session, user_service):
        db_session.execute(text(
            "INSERT INTO users (name, email, role, status, hobbies) "
            "VALUES ('Ghost', 'ghost@example.com', 0, 2, '[]')"
        ))
        db_session.commit()

        with pytest.raises(UnknownCodeError) as exc_info:
            user_service.find_by_email("ghost@example.com")
        assert exc_info.value.code == 2

    def test_unknown_hobby_fails_loudly(self, db_session, user_service):
        db_session.execute(text(
            "INSERT INTO users (name, email, role, status, hobbies) "
            "VALUES ('Ghost', 'ghost@example.com', 0, 0, '[\"knitting\"]')"
        ))
        db_session.commit()

        with pytest.raises(UnknownCodeError):
            user_service.find_by_email("ghost@example.com")


class TestScopesAndPredicates:

    @pytest.fixture
    def people(self, user_service):
        rows = [
            ("a@example.com", "admin", "active"),
            ("b@example.com", "manager", "inactive"),
            ("c@example.com", "intern", "suspended"),
            ("d@example.com", "admin", "inactive"),
        ]
        for email, role, status in rows:
            user_service.create({"name": email, "email": email, "role": role, "status": status})

    def test_with_status(self, people, user_service):
        users = user_service.list_by_status("inactive")
        assert [u.email for u in users] == ["b@example.com", "d@example.com"]

    def test_with_status_many(self, people, db_session):
        users = db_session.query(User).filter(User.with_status("active", "suspended")).order_by(User.id).all()
        assert [u.email for u in users] == ["a@example.com", "c@example.com"]

    def test_without_status(self, people, db_session):
        users = db_session.query(User).filter(User.without_status("inactive")).order_by(User.id).all()
        assert [u.email for u in users] == ["a@example.com", "c@example.com"]

    def test_scope_filters_by_code(self):
        sql = str(User.with_status("suspended").compile(
            dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}
        ))
        assert "IN (3)" in sql

    def test_scope_rejects_unknown_member(self):
        with pytest.raises(InvalidMemberError):
            User.with_status("deleted")

    def test_instance_predicates(self):
        user = User(name="Boss", email="boss@example.com", role="admin")
        assert user.is_admin is True
        assert user.is_manager is False
        assert user.is_employee is False
        assert user.is_intern is False

    def test_query_predicates(self, people, db_session):
        admins = db_session.query(User).filter(User.is_admin).order_by(User.id).all()
        assert [u.email for u in admins] == ["a@example.com", "d@example.com"]
