"""Tests for the session store on the mock backend."""

import asyncio
import threading

import pytest
from pydantic import ValidationError

from storefront.auth.backends import MockAuthBackend
from storefront.auth.persistence import STORE_NAME, MemoryStorage
from storefront.auth.schemas import (
    AuthResponse,
    AuthUser,
    Credentials,
    ProfilePatch,
    RegisterPayload,
)
from storefront.auth.store import SessionStore, normalize_user
from storefront.config import Settings
from storefront.errors import AuthError


ADMIN = Credentials(email="admin@example.com", password="admin123")
USER = Credentials(email="user@example.com", password="user12345")


def run(coro):
    return asyncio.run(coro)


class TestLogin:
    def test_login_sets_user_token_and_role(self, store):
        run(store.login(ADMIN))

        assert store.user.email == "admin@example.com"
        assert store.user.role == "admin"
        assert store.token == "mock-token-1"
        assert store.is_admin is True
        assert store.loading is False
        assert store.error is None

    def test_login_as_plain_user(self, store):
        run(store.login(USER))
        assert store.user.role == "user"
        assert store.is_admin is False

    def test_bad_credentials_raise_and_record_error(self, store):
        with pytest.raises(AuthError) as excinfo:
            run(store.login(Credentials(email="admin@example.com", password="nope")))

        assert excinfo.value.status == 401
        assert store.error == "Invalid email or password"
        assert store.loading is False
        assert store.user is None

    def test_failed_login_keeps_previous_session(self, store):
        run(store.login(USER))
        with pytest.raises(AuthError):
            run(store.login(Credentials(email="x@example.com", password="y")))
        assert store.user.email == "user@example.com"

    def test_clear_error(self, store):
        with pytest.raises(AuthError):
            run(store.login(Credentials(email="x@example.com", password="y")))
        store.clear_error()
        assert store.error is None


class TestRegister:
    def test_register_then_login_yields_same_identity(self, store):
        run(store.register(RegisterPayload(email="new@x.com", password="p")))
        registered = store.user
        assert registered.role == "user"
        assert registered.name == "new"

        store.logout()
        run(store.login(Credentials(email="new@x.com", password="p")))

        assert store.user.id == registered.id
        assert store.user.email == "new@x.com"
        assert store.user.role == "user"

    def test_duplicate_email_is_rejected(self, store):
        with pytest.raises(AuthError) as excinfo:
            run(store.register(RegisterPayload(email="user@example.com", password="p")))
        assert excinfo.value.status == 409
        assert store.error == "Email already in use"


class TestRoles:
    def test_set_role_admin_then_logout(self, store):
        run(store.login(USER))
        store.set_role("admin")
        assert store.is_admin is True
        assert store.user.role == "admin"

        store.logout()
        assert store.user is None
        assert store.token is None
        assert store.is_admin is False

    def test_set_role_without_user_is_noop(self, store):
        store.set_role("admin")
        assert store.user is None
        assert store.is_admin is False

    def test_login_as_defaults_missing_role(self, store):
        store.login_as({"email": "dev@example.com", "role": None}, "mock-token-x")
        assert store.user.role == "user"
        assert store.is_admin is False
        assert store.token == "mock-token-x"

    def test_login_as_admin(self, store):
        store.login_as(AuthUser(email="admin@example.com", role="admin"), "mock-token-1")
        assert store.is_admin is True

    def test_login_as_disabled_outside_dev(self):
        store = SessionStore(MockAuthBackend(latency=0), allow_dev_login=False)
        with pytest.raises(AuthError) as excinfo:
            store.login_as({"email": "dev@example.com"})
        assert excinfo.value.status == 403
        assert store.user is None

    def test_production_settings_disable_login_as(self):
        settings = Settings(environment="production", mock_latency=0)
        assert SessionStore.from_settings(settings).allow_dev_login is False

    def test_dev_flag_reenables_login_as_in_production(self):
        settings = Settings(environment="production", show_dev_auth=True, mock_latency=0)
        assert SessionStore.from_settings(settings).allow_dev_login is True

    def test_normalize_user_from_dict(self):
        assert normalize_user({"email": "a@b.c"}).role == "user"
        assert normalize_user({"email": "a@b.c", "role": "admin"}).role == "admin"


class TestProfile:
    def test_fetch_profile_refreshes_user(self, store):
        run(store.login(USER))
        store.set_role("admin")
        run(store.fetch_profile())
        # the backend still says "user"
        assert store.user.role == "user"
        assert store.is_admin is False

    def test_fetch_profile_401_logs_out(self, store):
        store.login_as({"email": "ghost@example.com", "role": "admin"}, "mock-token-404")
        with pytest.raises(AuthError) as excinfo:
            run(store.fetch_profile())
        assert excinfo.value.status == 401
        assert store.user is None
        assert store.token is None
        assert store.is_admin is False
        assert store.loading is False

    def test_update_profile(self, store):
        run(store.login(USER))
        run(store.update_profile(ProfilePatch(name="Renamed")))
        assert store.user.name == "Renamed"
        assert store.user.role == "user"

    def test_update_profile_without_token(self, store):
        with pytest.raises(AuthError) as excinfo:
            run(store.update_profile(ProfilePatch(name="x")))
        assert excinfo.value.status == 401
        assert store.error == "Unauthorized"

    def test_change_password(self, store):
        run(store.login(USER))
        run(store.change_password("user12345", "changed"))
        store.logout()

        with pytest.raises(AuthError):
            run(store.login(USER))
        run(store.login(Credentials(email="user@example.com", password="changed")))
        assert store.user.email == "user@example.com"

    def test_change_password_wrong_current(self, store):
        run(store.login(USER))
        with pytest.raises(AuthError) as excinfo:
            run(store.change_password("wrong", "changed"))
        assert excinfo.value.status == 400
        assert store.error == "Current password is incorrect"


class TestPersistenceThroughStore:
    def test_login_is_persisted_and_restored(self, storage):
        store = SessionStore(MockAuthBackend(latency=0), storage=storage)
        run(store.login(ADMIN))
        store.flush()

        blob = storage.get_item(STORE_NAME)
        assert blob["version"] == 2
        assert blob["state"]["token"] == "mock-token-1"
        assert blob["state"]["isAdmin"] is True
        assert "loading" not in blob["state"]
        assert "error" not in blob["state"]

        restored = SessionStore(MockAuthBackend(latency=0), storage=storage)
        assert restored.user.email == "admin@example.com"
        assert restored.is_admin is True

    def test_set_role_is_persisted(self, store, storage):
        run(store.login(USER))
        store.set_role("admin")
        store.flush()
        assert storage.get_item(STORE_NAME)["state"]["isAdmin"] is True

    def test_logout_is_persisted(self, store, storage):
        run(store.login(USER))
        store.logout()
        store.flush()
        state = storage.get_item(STORE_NAME)["state"]
        assert state == {"user": None, "token": None, "isAdmin": False}


class _GatedBackend:
    """Backend whose logins finish only when the test releases them."""

    def __init__(self):
        self.gates = {}

    async def login(self, credentials):
        gate = self.gates.setdefault(credentials.email, asyncio.Event())
        await gate.wait()
        return AuthResponse(
            token=f"token-{credentials.email}",
            user=AuthUser(email=credentials.email),
        )


class TestConcurrentLogins:
    def test_last_completed_login_wins(self):
        backend = _GatedBackend()
        store = SessionStore(backend, storage=MemoryStorage())

        async def scenario():
            first = asyncio.ensure_future(store.login(Credentials(email="first@x.com", password="p")))
            second = asyncio.ensure_future(store.login(Credentials(email="second@x.com", password="p")))
            await asyncio.sleep(0)
            assert store.loading is True

            # the second request completes first, the first one last
            backend.gates["second@x.com"].set()
            await second
            assert store.user.email == "second@x.com"

            backend.gates["first@x.com"].set()
            await first

        run(scenario())
        assert store.user.email == "first@x.com"
        assert store.token == "token-first@x.com"
        assert store.loading is False


class TestProfileEmail:
    def test_null_email_is_rejected_by_the_patch(self):
        with pytest.raises(ValidationError):
            ProfilePatch(email=None)
        with pytest.raises(ValidationError):
            ProfilePatch(email="  ")

    def test_omitted_email_is_left_unset(self):
        assert ProfilePatch(name="x").model_dump(exclude_unset=True) == {"name": "x"}

    def test_invalid_patch_leaves_account_untouched(self, store):
        run(store.login(USER))
        # skips validation, as a caller building the patch by hand could
        bad = ProfilePatch.model_construct(email=None, _fields_set={"email"})

        with pytest.raises(ValueError):
            run(store.update_profile(bad))
        assert store.loading is False
        assert store.error

        run(store.fetch_profile())
        assert store.user.email == "user@example.com"
        store.logout()
        run(store.login(USER))
        assert store.user.email == "user@example.com"

    def test_email_taken_by_another_account_conflicts(self, store):
        run(store.login(USER))
        with pytest.raises(AuthError) as excinfo:
            run(store.update_profile(ProfilePatch(email="admin@example.com")))
        assert excinfo.value.status == 409
        assert store.user.email == "user@example.com"

        store.logout()
        run(store.login(ADMIN))
        assert store.is_admin is True

    def test_keeping_own_email_is_allowed(self, store):
        run(store.login(USER))
        run(store.update_profile(ProfilePatch(email="user@example.com", name="Same")))
        assert store.user.email == "user@example.com"
        assert store.user.name == "Same"

    def test_changed_email_is_used_for_the_next_login(self, store):
        run(store.login(USER))
        run(store.update_profile(ProfilePatch(email="renamed@example.com")))
        store.logout()

        with pytest.raises(AuthError):
            run(store.login(USER))
        run(store.login(Credentials(email="renamed@example.com", password="user12345")))
        assert store.user.id == "2"


class RecordingStorage(MemoryStorage):
    """Memory storage that notes which thread wrote each snapshot."""

    def __init__(self, delay=None):
        super().__init__()
        self.writes = []
        self.delay = delay

    def set_item(self, name, value):
        if self.delay is not None:
            self.delay.wait(timeout=5)
        self.writes.append((threading.current_thread().name, value["state"]["token"]))
        super().set_item(name, value)


class TestSnapshotWriter:
    def test_writes_run_off_the_calling_thread(self):
        storage = RecordingStorage()
        store = SessionStore(MockAuthBackend(latency=0), storage=storage)
        run(store.login(ADMIN))
        store.flush()

        assert storage.writes
        assert all(name.startswith("session-writer") for name, _ in storage.writes)
        assert threading.current_thread().name not in {name for name, _ in storage.writes}

    def test_flush_waits_for_queued_writes_in_order(self):
        gate = threading.Event()
        storage = RecordingStorage(delay=gate)
        store = SessionStore(MockAuthBackend(latency=0), storage=storage, allow_dev_login=True)

        store.login_as({"email": "a@x.com"}, "token-a")
        store.login_as({"email": "b@x.com"}, "token-b")
        store.logout()
        # the writer is held at the gate; nothing has landed yet
        assert store.user is None
        assert storage.get_item(STORE_NAME) is None

        gate.set()
        store.flush()
        assert [token for _, token in storage.writes] == ["token-a", "token-b", None]
        assert storage.get_item(STORE_NAME)["state"]["user"] is None

    def test_unchanged_identity_is_not_rewritten(self):
        storage = RecordingStorage()
        store = SessionStore(MockAuthBackend(latency=0), storage=storage)
        store.clear_error()
        store.flush()
        assert storage.writes == []

    def test_failed_write_is_reported_by_flush(self):
        class BrokenStorage(MemoryStorage):
            def set_item(self, name, value):
                raise OSError("disk full")

        store = SessionStore(MockAuthBackend(latency=0), storage=BrokenStorage())
        run(store.login(USER))
        assert store.user.email == "user@example.com"
        with pytest.raises(OSError):
            store.flush()

    def test_close_drains_then_stops_the_writer(self):
        storage = RecordingStorage()
        store = SessionStore(MockAuthBackend(latency=0), storage=storage)
        run(store.login(USER))
        store.close()

        assert storage.get_item(STORE_NAME)["state"]["token"] == "mock-token-2"
        with pytest.raises(RuntimeError):
            store.logout()


class TestThreadedRoleChanges:
    def test_concurrent_role_switches_stay_consistent(self, store, storage):
        run(store.login(USER))

        def switch(role):
            for _ in range(200):
                store.set_role(role)

        workers = [
            threading.Thread(target=switch, args=("admin" if i % 2 else "user",))
            for i in range(6)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        store.flush()

        assert store.user.email == "user@example.com"
        assert store.token == "mock-token-2"
        persisted = storage.get_item(STORE_NAME)["state"]
        assert persisted["isAdmin"] is store.is_admin
        assert persisted["user"]["role"] == store.user.role
