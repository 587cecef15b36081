from sfconnect.core.passwords import hash_password, verify_password


def test_hash_is_salted_bcrypt():
    h1 = hash_password("testPassword123!")
    h2 = hash_password("testPassword123!")
    assert h1 != "testPassword123!"
    assert h1.startswith("$2")
    assert len(h1) > 50
    # Salted: same input, different hash
    assert h1 != h2


def test_verify_correct_and_incorrect_password():
    h = hash_password("testPassword123!")
    assert verify_password("testPassword123!", h) is True
    assert verify_password("wrongPassword456!", h) is False


def test_verify_against_malformed_hash_is_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False
    assert verify_password("anything", "") is False


def test_work_factor_comes_from_settings(monkeypatch):
    from sfconnect.core.config import get_settings

    monkeypatch.setattr(get_settings(), "password_hash_rounds", 5)
    assert hash_password("pw").startswith("$2b$05$")
