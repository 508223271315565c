import pydantic
import pytest

import staff
from errors import NotFound, ValidationError
from schemas import Staff, StaffUpdate


def _staff(**overrides):
    data = {
        "firstName": "  Ravi ",
        "phone": "9876543210",
        "email": "  Ravi@Shop.IN ",
        "password": "secret1",
    }
    data.update(overrides)
    return Staff(**data)


def test_staff_schema_normalizes_fields():
    member = _staff()

    assert member.first_name == "Ravi"
    assert member.last_name == ""
    assert member.email == "ravi@shop.in"
    assert member.role == "staff"
    assert member.address == ""


@pytest.mark.parametrize("overrides", [
    {"phone": "5876543210"},
    {"phone": "98765"},
    {"email": "not-an-email"},
    {"password": "12345"},
    {"role": "owner"},
    {"firstName": "   "},
])
def test_staff_schema_rejects_bad_values(overrides):
    with pytest.raises(pydantic.ValidationError):
        _staff(**overrides)


def test_create_hashes_password_and_hides_it(mongo_db):
    created = staff.create_staff(mongo_db, _staff(role="admin"))

    assert "password" not in created
    assert created["role"] == "admin"
    assert created["createdAt"] == created["updatedAt"]

    stored = mongo_db["staff"].find_one({"email": "ravi@shop.in"})
    assert stored["password"] != "secret1"
    assert staff.check_password("secret1", stored["password"])


def test_duplicate_email_is_rejected(mongo_db):
    staff.create_staff(mongo_db, _staff())
    with pytest.raises(ValidationError):
        staff.create_staff(mongo_db, _staff(email="RAVI@shop.in"))


def test_update_rehashes_new_password(mongo_db):
    created = staff.create_staff(mongo_db, _staff())

    updated = staff.update_staff(mongo_db, created["id"], StaffUpdate(password="better-secret", lastName="K"))

    assert updated["lastName"] == "K"
    stored = mongo_db["staff"].find_one({"email": "ravi@shop.in"})
    assert staff.check_password("better-secret", stored["password"])
    assert not staff.check_password("secret1", stored["password"])


def test_update_to_taken_email_is_rejected(mongo_db):
    staff.create_staff(mongo_db, _staff())
    other = staff.create_staff(mongo_db, _staff(email="asha@shop.in", phone="9123456780"))

    with pytest.raises(ValidationError):
        staff.update_staff(mongo_db, other["id"], StaffUpdate(email="ravi@shop.in"))
    # keeping your own email is fine
    assert staff.update_staff(mongo_db, other["id"], StaffUpdate(email="ASHA@shop.in"))["email"] == "asha@shop.in"


def test_list_get_delete(mongo_db):
    created = staff.create_staff(mongo_db, _staff())

    assert [s["id"] for s in staff.list_staff(mongo_db)] == [created["id"]]
    assert staff.get_staff(mongo_db, created["id"])["firstName"] == "Ravi"

    staff.delete_staff(mongo_db, created["id"])
    with pytest.raises(NotFound):
        staff.get_staff(mongo_db, created["id"])
    with pytest.raises(NotFound):
        staff.delete_staff(mongo_db, created["id"])
